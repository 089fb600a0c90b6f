"""
Typed records produced by the CNA import pipeline.

Derived values (gap score, gap/current-score categories, performance level)
are computed properties so they always follow the stored score they come from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Sequence

from .classify import (
    REALISTIC_SCORE,
    CurrentScoreCategory,
    GapCategory,
    GradingGroup,
    PerformanceRatingLevel,
    current_score_category,
    gap_category,
    performance_rating_level,
)

UrgencyLevel = Literal["Low", "Medium", "High"]
EstablishmentStatus = Literal["Confirmed", "Probation", "Vacant", "Other"]

URGENCY_LEVELS: Sequence[str] = ("Low", "Medium", "High")
ESTABLISHMENT_STATUSES: Sequence[str] = ("Confirmed", "Probation", "Vacant", "Other")


@dataclass(frozen=True)
class TrainingRecord:
    course_name: str
    completion_date: str

    def render(self) -> str:
        return f"{self.course_name} ({self.completion_date})"


@dataclass(frozen=True)
class CapabilityRating:
    """One CNA question response. Only the current score is stored."""

    question_code: str
    current_score: float

    @property
    def realistic_score(self) -> int:
        return REALISTIC_SCORE

    @property
    def gap_score(self) -> float:
        return REALISTIC_SCORE - self.current_score

    @property
    def gap_category(self) -> GapCategory:
        return gap_category(self.gap_score)

    @property
    def current_score_category(self) -> CurrentScoreCategory:
        return current_score_category(self.current_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question_code": self.question_code,
            "current_score": self.current_score,
            "realistic_score": self.realistic_score,
            "gap_score": self.gap_score,
            "gap_category": self.gap_category,
            "current_score_category": self.current_score_category,
        }


@dataclass(frozen=True)
class OfficerRecord:
    email: str
    name: str
    position: str
    division: str
    grade: str
    grading_group: GradingGroup
    spa_rating: str
    capability_ratings: List[CapabilityRating] = field(default_factory=list)
    misalignment_flag: Optional[str] = None
    position_number: Optional[str] = None
    technical_capability_gaps: List[str] = field(default_factory=list)
    leadership_capability_gaps: List[str] = field(default_factory=list)
    ict_skills: List[str] = field(default_factory=list)
    training_history: List[TrainingRecord] = field(default_factory=list)
    training_preferences: List[str] = field(default_factory=list)
    urgency: UrgencyLevel = "Low"
    next_training_due_date: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[Literal["Male", "Female"]] = None
    date_of_birth: Optional[str] = None
    job_qualification: Optional[str] = None
    commencement_date: Optional[str] = None
    years_of_experience: Optional[int] = None
    employment_status: Optional[str] = None
    file_number: Optional[str] = None
    # Section H (training needs) responses
    tna_process_exists: Optional[bool] = None
    tna_assessment_methods: List[str] = field(default_factory=list)
    tna_process_documented: Optional[bool] = None
    tna_desired_courses: Optional[str] = None
    tna_interested_topics: List[str] = field(default_factory=list)
    tna_priorities: Optional[str] = None

    @property
    def performance_rating_level(self) -> PerformanceRatingLevel:
        return performance_rating_level(self.spa_rating)

    @property
    def average_capability_score(self) -> Optional[float]:
        if not self.capability_ratings:
            return None
        return sum(r.current_score for r in self.capability_ratings) / len(self.capability_ratings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "name": self.name,
            "position": self.position,
            "division": self.division,
            "grade": self.grade,
            "grading_group": self.grading_group,
            "position_number": self.position_number,
            "spa_rating": self.spa_rating,
            "performance_rating_level": self.performance_rating_level,
            "capability_ratings": [r.to_dict() for r in self.capability_ratings],
            "misalignment_flag": self.misalignment_flag,
            "technical_capability_gaps": list(self.technical_capability_gaps),
            "leadership_capability_gaps": list(self.leadership_capability_gaps),
            "ict_skills": list(self.ict_skills),
            "training_history": [
                {"course_name": t.course_name, "completion_date": t.completion_date}
                for t in self.training_history
            ],
            "training_preferences": list(self.training_preferences),
            "urgency": self.urgency,
            "next_training_due_date": self.next_training_due_date,
            "age": self.age,
            "gender": self.gender,
            "date_of_birth": self.date_of_birth,
            "job_qualification": self.job_qualification,
            "commencement_date": self.commencement_date,
            "years_of_experience": self.years_of_experience,
            "employment_status": self.employment_status,
            "file_number": self.file_number,
            "tna_process_exists": self.tna_process_exists,
            "tna_assessment_methods": list(self.tna_assessment_methods),
            "tna_process_documented": self.tna_process_documented,
            "tna_desired_courses": self.tna_desired_courses,
            "tna_interested_topics": list(self.tna_interested_topics),
            "tna_priorities": self.tna_priorities,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OfficerRecord":
        """
        Rebuild a record from `to_dict` output.

        Derived keys (performance level, gap values) are ignored and recomputed.
        """

        ratings = [
            CapabilityRating(str(r["question_code"]), float(r["current_score"]))
            for r in data.get("capability_ratings") or []
        ]
        history = [
            TrainingRecord(str(t.get("course_name", "")), str(t.get("completion_date", "N/A")))
            for t in data.get("training_history") or []
        ]
        skip = {"performance_rating_level", "capability_ratings", "training_history"}
        known = set(cls.__dataclass_fields__)
        kwargs = {k: v for k, v in data.items() if k in known and k not in skip}
        return cls(capability_ratings=ratings, training_history=history, **kwargs)


@dataclass(frozen=True)
class EstablishmentRecord:
    position_number: str
    division: str
    grade: str
    designation: str
    occupant: str
    status: EstablishmentStatus = "Other"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position_number": self.position_number,
            "division": self.division,
            "grade": self.grade,
            "designation": self.designation,
            "occupant": self.occupant,
            "status": self.status,
        }


@dataclass(frozen=True)
class EstablishmentSummary:
    total_positions: int
    divisions: List[str]
    level_summary: Dict[str, int]
    vacant_count: int
