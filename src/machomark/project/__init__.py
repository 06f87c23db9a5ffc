"""Project persistence for markup results."""

from machomark.project.database import (
    DataRecord,
    LabelRecord,
    FragmentRecord,
    ProjectDatabase,
)
from machomark.project.annotations import Annotation, AnnotationType

__all__ = [
    "ProjectDatabase",
    "DataRecord",
    "LabelRecord",
    "FragmentRecord",
    "Annotation",
    "AnnotationType",
]
