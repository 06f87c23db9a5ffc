"""Annotations recorded against image addresses."""

from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Any


class AnnotationType(IntEnum):
    """Type of annotation."""

    COMMENT = auto()  # Plate comment over a placed record


@dataclass
class Annotation:
    """Annotation attached to an address."""

    address: int
    annotation_type: AnnotationType
    value: str
    metadata: dict[str, Any] | None = None

    def __repr__(self) -> str:
        type_str = self.annotation_type.name.lower()
        return f"Annotation({self.address:#x}, {type_str}, {self.value!r})"
