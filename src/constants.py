"""Shared constant values used across the mapper."""

from typing import Final

APPLIED_COLUMN_NAME: Final[str] = "[applied]"
DEFAULT_INDEX_SUFFIX: Final[str] = "idx"
DEFAULT_KEY_ATTRIBUTE: Final[str] = "id"
