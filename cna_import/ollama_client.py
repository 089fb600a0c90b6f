from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests


class OllamaClient:
    def __init__(
        self,
        host: str,
        keep_alive: str = "5m",
        timeout: Optional[float] = None,
        denylist_enabled: bool = False,
        denylist_substrings: Optional[List[str]] = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.keep_alive = keep_alive
        self.timeout = timeout
        self.denylist_enabled = denylist_enabled
        self.denylist_substrings = [s.lower() for s in (denylist_substrings or [])]

    def _check_model(self, model: str) -> None:
        if not self.denylist_enabled:
            return
        lowered = model.lower()
        for substring in self.denylist_substrings:
            if substring and substring in lowered:
                raise ValueError(f"Model '{model}' is blocked by denylist substring '{substring}'.")

    def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: str,
        temperature: float = 0.0,
        response_format: Optional[str] = None,
    ) -> str:
        """Single non-streaming chat request; returns the assistant message text."""

        self._check_model(model)
        url = f"{self.host}/api/chat"
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "stream": False,
            "keep_alive": self.keep_alive,
            "options": {"temperature": temperature},
        }
        if response_format:
            payload["format"] = response_format
        response = requests.post(url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        message = data.get("message") or {}
        content = message.get("content")
        if content is None:
            raise ValueError(f"No message content returned from Ollama: {data}")
        return content
