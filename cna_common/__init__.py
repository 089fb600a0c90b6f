"""
Shared CNA schema, coercion, classification and normalization helpers used by
the file adapters and the command-line importer.
"""

from .schema import (  # noqa: F401
    ALIAS_TABLE_VERSION,
    ESTABLISHMENT_HEADER_ALIASES,
    OFFICER_HEADER_ALIASES,
    HeaderAliases,
    find_header,
    is_rating_header,
    merge_alias_overrides,
    missing_required,
    resolve_headers,
)

from .classify import (  # noqa: F401
    AGENCY_TYPES,
    DEFAULT_GRADING_TABLE,
    GRADING_GROUPS,
    GradingTable,
    current_score_category,
    gap_category,
    grading_group,
    misalignment_flag,
    performance_rating_level,
)

from .records import (  # noqa: F401
    CapabilityRating,
    EstablishmentRecord,
    EstablishmentSummary,
    OfficerRecord,
    TrainingRecord,
)

from .errors import (  # noqa: F401
    CnaImportError,
    ExtractionError,
    NoValidRecordsError,
    SchemaError,
    StructuralError,
)

from .normalize import (  # noqa: F401
    EstablishmentImport,
    ImportResult,
    NormalizationReport,
    RawTable,
    normalize_establishment_table,
    normalize_officer_table,
    rows_from_grid,
    summarize_establishment,
)

from .dedupe import deduplicate_officers, merge_officers, officer_key  # noqa: F401

__all__ = [
    "ALIAS_TABLE_VERSION",
    "ESTABLISHMENT_HEADER_ALIASES",
    "OFFICER_HEADER_ALIASES",
    "HeaderAliases",
    "find_header",
    "is_rating_header",
    "merge_alias_overrides",
    "missing_required",
    "resolve_headers",
    "AGENCY_TYPES",
    "DEFAULT_GRADING_TABLE",
    "GRADING_GROUPS",
    "GradingTable",
    "current_score_category",
    "gap_category",
    "grading_group",
    "misalignment_flag",
    "performance_rating_level",
    "CapabilityRating",
    "EstablishmentRecord",
    "EstablishmentSummary",
    "OfficerRecord",
    "TrainingRecord",
    "CnaImportError",
    "ExtractionError",
    "NoValidRecordsError",
    "SchemaError",
    "StructuralError",
    "EstablishmentImport",
    "ImportResult",
    "NormalizationReport",
    "RawTable",
    "normalize_establishment_table",
    "normalize_officer_table",
    "rows_from_grid",
    "summarize_establishment",
    "deduplicate_officers",
    "merge_officers",
    "officer_key",
]
