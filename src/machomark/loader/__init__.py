"""Binary loader module for decoding Mach-O segment commands."""

from machomark.loader.macho import MachOBinary, MachOHeader
from machomark.loader.reader import BinaryReader
from machomark.loader.layout import FieldSpec, RecordLayout
from machomark.loader.sections import Section, section_layout
from machomark.loader.relocations import RelocationInfo, relocation_layout
from machomark.loader.segments import (
    SegmentCommand,
    LoadCommandHeader,
    decode_segment,
    canonicalize_address,
    segment_command_layout,
)

__all__ = [
    "MachOBinary",
    "MachOHeader",
    "BinaryReader",
    "FieldSpec",
    "RecordLayout",
    "Section",
    "SegmentCommand",
    "LoadCommandHeader",
    "RelocationInfo",
    "decode_segment",
    "canonicalize_address",
    "section_layout",
    "relocation_layout",
    "segment_command_layout",
]
