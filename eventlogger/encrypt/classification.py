"""Data classifications, filter operations and classification tag parsing."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping, Optional, Union

REDACTED_DATA = "[REDACTED]"
"""The value that replaces redacted data."""

DATA_CLASSIFICATION_TAG_NAME = "class"
"""The tag name used to classify fields."""


class DataClassification(str, enum.Enum):
    """Categories of data: public, sensitive, secret."""

    UNKNOWN = "unknown"
    PUBLIC = "public"
    SENSITIVE = "sensitive"
    SECRET = "secret"

    def __str__(self) -> str:
        return self.value


class FilterOperation(str, enum.Enum):
    """Operations that can be applied to classified data."""

    NONE = ""
    UNKNOWN = "unknown"
    REDACT = "redact"
    ENCRYPT = "encrypt"
    HMAC_SHA256 = "hmac-sha256"

    def __str__(self) -> str:
        return self.value


Overrides = Mapping[Union[DataClassification, str], Union[FilterOperation, str]]


@dataclass(frozen=True)
class TagInfo:
    """The classification of a field and the operation to apply to it."""

    classification: Union[DataClassification, str]
    operation: Union[FilterOperation, str] = FilterOperation.NONE


def convert_to_operation(seg: str) -> FilterOperation:
    """Map a tag segment to a FilterOperation, case-insensitively."""
    try:
        return FilterOperation(seg.lower())
    except ValueError:
        return FilterOperation.UNKNOWN


def default_filter_operations() -> dict[DataClassification, FilterOperation]:
    """Return a fresh map of each classification to its default operation."""
    return {
        DataClassification.PUBLIC: FilterOperation.NONE,
        DataClassification.SENSITIVE: FilterOperation.ENCRYPT,
        DataClassification.SECRET: FilterOperation.REDACT,
    }


def classification_from_tag(
    tag: Optional[Mapping[str, str]], filter_operations: Optional[Overrides] = None
) -> TagInfo:
    """Classify a field from its tag mapping (for example dataclass field metadata)."""
    if tag is None or DATA_CLASSIFICATION_TAG_NAME not in tag:
        return TagInfo(DataClassification.UNKNOWN, FilterOperation.UNKNOWN)
    return classification_from_tag_string(
        tag[DATA_CLASSIFICATION_TAG_NAME], filter_operations
    )


def classification_from_tag_string(
    tag: str, filter_operations: Optional[Overrides] = None
) -> TagInfo:
    """Parse a "classification[,operation]" tag string.

    Overrides take precedence over the tag's operation; unknown
    classifications yield an unknown classification and operation.
    """
    segs = tag.split(",")
    operation = convert_to_operation(segs[1]) if len(segs) > 1 else FilterOperation.NONE
    if operation is FilterOperation.UNKNOWN:
        operation = FilterOperation.NONE

    raw = segs[0]
    classification: Union[DataClassification, str]
    try:
        classification = DataClassification(raw)
    except ValueError:
        classification = raw

    overrides = filter_operations or {}
    if classification in overrides:
        return TagInfo(classification, overrides[classification])

    defaults = default_filter_operations()
    if classification is DataClassification.PUBLIC:
        return TagInfo(DataClassification.PUBLIC, defaults[DataClassification.PUBLIC])
    if classification in (DataClassification.SENSITIVE, DataClassification.SECRET):
        if operation is FilterOperation.NONE:
            operation = defaults[classification]
        return TagInfo(classification, operation)
    return TagInfo(DataClassification.UNKNOWN, FilterOperation.UNKNOWN)