"""Programme design studio core: document model, migration, checks and exports."""

from .checks import check_alignment, check_module, performance_summary, programme_warnings, validate_programme
from .errors import EntityNotFound, StudioError, ValidationError
from .export import build_handoff, programme_from_qqi, transform_to_qqi
from .migrate import migrate_udl_guidelines
from .template import blank_programme, load_programme, merge_over_template

__version__ = "1.0.0"

__all__ = [
    "EntityNotFound",
    "StudioError",
    "ValidationError",
    "blank_programme",
    "build_handoff",
    "check_alignment",
    "check_module",
    "load_programme",
    "merge_over_template",
    "migrate_udl_guidelines",
    "performance_summary",
    "programme_from_qqi",
    "programme_warnings",
    "transform_to_qqi",
    "validate_programme",
]
