"""Markup of segment commands: record placement, labels and fragments."""

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from machomark.errors import AnnotationError
from machomark.loader.constants import FileType
from machomark.loader.sections import Section
from machomark.loader.segments import SegmentCommand
from machomark.markup.actions import (
    Action,
    CreateLabel,
    PlaceRecord,
    AnnotationSink,
    CreateFragment,
)
from machomark.markup.monitor import MessageLog, TaskMonitor

if TYPE_CHECKING:
    from machomark.loader.macho import MachOBinary

logger = logging.getLogger(__name__)

SECTION_BYTES_FRAGMENT = "SECTION_BYTES"
RELOCATIONS_SUFFIX = "_Relocations"


def has_file_content(section: Section, file_type: int) -> bool:
    """Whether a section's bytes exist in the file."""
    if section.is_zero_fill:
        return False
    return file_type != FileType.MH_DYLIB_STUB


def plan_segment_markup(
    segment: SegmentCommand,
    image_base: int,
    file_type: int,
    monitor: TaskMonitor,
) -> Iterator[Action]:
    """Yield the markup actions for a segment's sections, in order.

    The generator is lazy: cancellation is polled before each section,
    before a section's byte label and fragment, and before each
    relocation entry.
    """
    record_addr = image_base + segment.header.start_index + segment.layout().size

    for section in segment.sections:
        if monitor.is_cancelled:
            return

        layout = section.layout
        yield PlaceRecord(record_addr, layout, section.summary())
        record_addr += layout.size

        if not has_file_content(section, file_type):
            continue

        if monitor.is_cancelled:
            return

        byte_addr = image_base + section.offset
        if section.size > 0:
            yield CreateLabel(byte_addr, section.name)
            yield CreateFragment(SECTION_BYTES_FRAGMENT, byte_addr, section.size)

        if section.reloff > 0:
            reloc_start = image_base + section.reloff
            offset = 0
            for reloc in section.relocations:
                if monitor.is_cancelled:
                    return
                reloc_layout = reloc.layout
                yield PlaceRecord(reloc_start + offset, reloc_layout, reloc.summary())
                offset += reloc_layout.size
            yield CreateFragment(section.name + RELOCATIONS_SUFFIX, reloc_start, offset)


def annotate(
    segment: SegmentCommand,
    image_base: int,
    file_type: int,
    monitor: TaskMonitor | None,
    sink: AnnotationSink,
    log: MessageLog | None = None,
) -> None:
    """Apply a segment's markup actions to sink.

    Never raises: a failure abandons the rest of this segment's markup and
    is reported to log. Actions already applied are kept.
    """
    monitor = monitor or TaskMonitor()
    log = log if log is not None else MessageLog()

    applied = 0
    try:
        for action in plan_segment_markup(segment, image_base, file_type, monitor):
            action.apply(sink)
            applied += 1
    except Exception as e:
        error = AnnotationError(f"{segment.command_name} {segment.name}", e)
        log.append_msg(str(error))
        return

    logger.debug("Applied %d actions for %s", applied, segment.name)


def annotate_image(
    binary: "MachOBinary",
    sink: AnnotationSink,
    monitor: TaskMonitor | None = None,
    log: MessageLog | None = None,
    image_base: int = 0,
) -> MessageLog:
    """Mark up every segment command of a binary independently."""
    monitor = monitor or TaskMonitor()
    log = log if log is not None else MessageLog()

    for segment in binary.segments:
        if monitor.is_cancelled:
            break
        annotate(segment, image_base, binary.file_type, monitor, sink, log)

    return log
