"""Description list storage and validation."""

from .models import (
    MAX_LENGTH_FREE,
    MAX_LENGTH_PREMIUM,
    MAX_LENGTH_SHORT_DESCRIPTION,
    Description,
    DescriptionError,
    DescriptionFileError,
    DescriptionList,
    DescriptionNotFoundError,
    load_descriptions,
    save_descriptions,
)
from .store import DescriptionStore
from .validation import (
    DescriptionValidationError,
    validate_list,
    validate_list_all,
    validate_text,
)

__all__ = [
    "MAX_LENGTH_FREE",
    "MAX_LENGTH_PREMIUM",
    "MAX_LENGTH_SHORT_DESCRIPTION",
    "Description",
    "DescriptionError",
    "DescriptionFileError",
    "DescriptionList",
    "DescriptionNotFoundError",
    "DescriptionStore",
    "DescriptionValidationError",
    "load_descriptions",
    "save_descriptions",
    "validate_list",
    "validate_list_all",
    "validate_text",
]
