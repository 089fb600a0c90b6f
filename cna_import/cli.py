"""Command-line importer for CNA officer data and establishment lists."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from cna_common.classify import AGENCY_TYPES
from cna_common.dedupe import deduplicate_officers, merge_officers
from cna_common.errors import CnaImportError
from cna_common.normalize import ImportResult, RawTable

from .adapters import parse_cna_file, parse_establishment_file, parse_pasted_data
from .config import load_context, load_settings
from .export import read_officer_json, write_records
from .extraction import OllamaTableExtractor

LOGGER = logging.getLogger(__name__)


def _report_import(result: ImportResult, show_preview: bool = False) -> None:
    report = result.report
    print(
        f"[OK] Parsed {report.valid_row_count} valid records "
        f"({report.raw_row_count} rows read, {report.dropped_count} dropped)."
    )
    print(f"[INFO] Preview shows {len(result.preview)} of {report.raw_row_count} rows.")
    if show_preview:
        print(RawTable(headers=result.headers, rows=result.preview).to_frame())
    flagged = sum(1 for r in result.records if r.misalignment_flag)
    if flagged:
        print(f"[INFO] {flagged} officers flagged for performance/capability misalignment.")


def _finish_officers(result: ImportResult, args: argparse.Namespace) -> None:
    records = result.records
    if not args.keep_duplicates:
        records = deduplicate_officers(records)
        print(f"[INFO] {len(records)} unique officers after de-duplication.")
    _report_import(result, show_preview=args.show_preview)
    if args.out:
        write_records(records, args.out)
        print(f"[OK] Wrote {len(records)} records to {args.out}")


def cmd_officers(args: argparse.Namespace) -> None:
    settings = load_settings()
    context = load_context(settings)
    result = parse_cna_file(
        args.file,
        args.agency_type or settings.agency_type,
        context=context,
        extractor=OllamaTableExtractor.from_settings(settings),
    )
    _finish_officers(result, args)


def cmd_paste(args: argparse.Namespace) -> None:
    settings = load_settings()
    if args.file in (None, "-"):
        text = sys.stdin.read()
    else:
        text = Path(args.file).read_text(encoding="utf-8")
    result = parse_pasted_data(text, args.agency_type or settings.agency_type, context=load_context(settings))
    _finish_officers(result, args)


def cmd_establishment(args: argparse.Namespace) -> None:
    settings = load_settings()
    result = parse_establishment_file(
        args.file,
        args.agency_type or settings.agency_type,
        context=load_context(settings),
        extractor=OllamaTableExtractor.from_settings(settings),
    )
    summary = result.summary
    print(f"[OK] Parsed {summary.total_positions} positions ({summary.vacant_count} vacant).")
    print(f"[INFO] Divisions: {', '.join(summary.divisions) or '-'}")
    print(
        "[INFO] Level breakdown: "
        + ", ".join(f"{group}: {count}" for group, count in summary.level_summary.items())
    )
    if args.out:
        write_records(result.records, args.out, summary=summary)
        print(f"[OK] Wrote {len(result.records)} positions to {args.out}")


def cmd_merge(args: argparse.Namespace) -> None:
    existing = read_officer_json(args.existing)
    incoming = read_officer_json(args.incoming)
    merged = merge_officers(existing, incoming)
    print(f"[OK] {len(existing)} existing + {len(incoming)} incoming -> {len(merged)} unique officers.")
    write_records(merged, args.out)
    print(f"[OK] Wrote {len(merged)} records to {args.out}")


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Import CNA officer data and establishment lists (xlsx, csv, pdf or pasted TSV).",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    def add_common(sub: argparse.ArgumentParser, *, officer_flags: bool) -> None:
        sub.add_argument(
            "--agency-type",
            choices=[t for t in AGENCY_TYPES if t != "All Agencies"],
            help="Agency type used for grading-group inference (default: AGENCY_TYPE env)",
        )
        sub.add_argument("--out", type=Path, help="Write records to .json, .csv or .xlsx")
        if officer_flags:
            sub.add_argument(
                "--keep-duplicates",
                action="store_true",
                help="Write every parsed row instead of collapsing officers by email or name+position",
            )
            sub.add_argument("--show-preview", action="store_true", help="Print the raw preview rows")

    officers = subparsers.add_parser("officers", help="Import a CNA file (.xlsx, .csv or .pdf).")
    officers.add_argument("file", type=Path)
    add_common(officers, officer_flags=True)
    officers.set_defaults(func=cmd_officers)

    paste = subparsers.add_parser("paste", help="Import tab-separated CNA data from a file or stdin.")
    paste.add_argument("file", nargs="?", default="-", help="TSV file, or '-' for stdin")
    add_common(paste, officer_flags=True)
    paste.set_defaults(func=cmd_paste)

    establishment = subparsers.add_parser("establishment", help="Import an establishment list.")
    establishment.add_argument("file", type=Path)
    add_common(establishment, officer_flags=False)
    establishment.set_defaults(func=cmd_establishment)

    merge = subparsers.add_parser("merge", help="Append one officer JSON export to another.")
    merge.add_argument("existing", type=Path)
    merge.add_argument("incoming", type=Path)
    merge.add_argument("--out", type=Path, required=True)
    merge.set_defaults(func=cmd_merge)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "func", None):
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    try:
        args.func(args)
    except (CnaImportError, ValueError, OSError) as exc:
        print(f"[ERROR] {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
