"""Markup of decoded load commands onto a program's byte model."""

from machomark.markup.driver import annotate, annotate_image, plan_segment_markup
from machomark.markup.monitor import MessageLog, TaskMonitor
from machomark.markup.actions import (
    Action,
    CreateLabel,
    PlaceRecord,
    RecordingSink,
    AnnotationSink,
    CreateFragment,
)

__all__ = [
    "annotate",
    "annotate_image",
    "plan_segment_markup",
    "MessageLog",
    "TaskMonitor",
    "Action",
    "CreateLabel",
    "PlaceRecord",
    "RecordingSink",
    "AnnotationSink",
    "CreateFragment",
]
