"""Mach-O container parser that hands segment commands to the decoder."""

import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path

from machomark.errors import DecodeError
from machomark.loader.constants import (
    MACH_HEADER_64_SIZE,
    MACH_HEADER_SIZE,
    MH_CIGAM,
    MH_CIGAM_64,
    MH_MAGIC,
    MH_MAGIC_64,
    FileType,
    LoadCommand,
)
from machomark.loader.reader import BinaryReader
from machomark.loader.sections import Section
from machomark.loader.segments import LoadCommandHeader, SegmentCommand

logger = logging.getLogger(__name__)

SEGMENT_COMMANDS = (LoadCommand.LC_SEGMENT, LoadCommand.LC_SEGMENT_64)


@dataclass
class MachOHeader:
    """Mach-O header (mach_header / mach_header_64)."""

    magic: int
    cputype: int
    cpusubtype: int
    filetype: int
    ncmds: int
    sizeofcmds: int
    flags: int
    reserved: int = 0
    little_endian: bool = True

    @classmethod
    def parse(cls, data: bytes) -> "MachOHeader":
        """Parse header from bytes, detecting width and byte order."""
        if len(data) < MACH_HEADER_SIZE:
            raise DecodeError("Data too small for Mach-O header", 0)

        magic = struct.unpack("<I", data[:4])[0]
        if magic in (MH_MAGIC, MH_MAGIC_64):
            prefix = "<"
        elif magic in (MH_CIGAM, MH_CIGAM_64):
            prefix = ">"
        else:
            raise DecodeError(f"Not a Mach-O file (magic {magic:#010x})", 0)

        magic = struct.unpack(prefix + "I", data[:4])[0]
        if magic == MH_MAGIC_64:
            if len(data) < MACH_HEADER_64_SIZE:
                raise DecodeError("Data too small for Mach-O header", 0)
            fields = struct.unpack(prefix + "IIIIIIII", data[:MACH_HEADER_64_SIZE])
        else:
            fields = struct.unpack(prefix + "IIIIIII", data[:MACH_HEADER_SIZE])

        return cls(*fields, little_endian=prefix == "<")

    @property
    def is_64bit(self) -> bool:
        return self.magic == MH_MAGIC_64

    @property
    def size(self) -> int:
        return MACH_HEADER_64_SIZE if self.is_64bit else MACH_HEADER_SIZE

    @property
    def file_type_name(self) -> str:
        try:
            return FileType(self.filetype).name
        except ValueError:
            return f"{self.filetype:#x}"


@dataclass
class MachOBinary:
    """Parsed Mach-O image: header, segment commands and other commands."""

    path: Path
    header: MachOHeader
    segments: list[SegmentCommand] = field(default_factory=list)
    load_commands: list[LoadCommandHeader] = field(default_factory=list)
    decode_errors: list[DecodeError] = field(default_factory=list)
    _raw_data: bytes = field(default=b"", repr=False)

    @classmethod
    def load(cls, path: str | Path) -> "MachOBinary":
        """Load and parse a Mach-O binary from disk."""
        path = Path(path)
        with open(path, "rb") as f:
            data = f.read()

        return cls.parse(data, path)

    @classmethod
    def parse(cls, data: bytes, path: Path | None = None) -> "MachOBinary":
        """Parse Mach-O binary from bytes."""
        header = MachOHeader.parse(data)

        binary = cls(
            path=path or Path("<memory>"),
            header=header,
            _raw_data=data,
        )

        binary._parse_load_commands(data)
        return binary

    def _parse_load_commands(self, data: bytes) -> None:
        """Walk all load commands, decoding each segment command."""
        reader = BinaryReader(data, self.header.size, self.header.little_endian)

        for index in range(self.header.ncmds):
            try:
                cmd_header = LoadCommandHeader.read(reader)
            except DecodeError as e:
                logger.warning("Load command %d truncated: %s", index, e)
                self.decode_errors.append(e)
                break

            self.load_commands.append(cmd_header)

            if cmd_header.command_type in SEGMENT_COMMANDS:
                self._parse_segment(reader, cmd_header)

            if cmd_header.cmdsize < 8:
                logger.warning(
                    "Load command %d has invalid size %d, stopping",
                    index,
                    cmd_header.cmdsize,
                )
                break
            reader.seek(cmd_header.start_index + cmd_header.cmdsize)

    def _parse_segment(self, reader: BinaryReader, cmd_header: LoadCommandHeader) -> None:
        """Decode one segment command; failures do not affect siblings."""
        is_64bit = cmd_header.command_type == LoadCommand.LC_SEGMENT_64
        try:
            segment = SegmentCommand.decode(reader.clone(), is_64bit, cmd_header)
        except DecodeError as e:
            logger.warning(
                "Unable to decode segment command at %#x: %s",
                cmd_header.start_index,
                e,
            )
            self.decode_errors.append(e)
            return

        logger.debug(
            "Decoded %s %s with %d sections",
            segment.command_name,
            segment.name,
            len(segment.sections),
        )
        self.segments.append(segment)

    # Public API methods

    @property
    def is_64bit(self) -> bool:
        return self.header.is_64bit

    @property
    def file_type(self) -> int:
        return self.header.filetype

    @property
    def data(self) -> bytes:
        return self._raw_data

    def get_segment(self, name: str) -> SegmentCommand | None:
        """Get segment by name."""
        for seg in self.segments:
            if seg.name == name:
                return seg
        return None

    def get_section(self, segment: str, section: str) -> Section | None:
        """Get section by segment and section name."""
        seg = self.get_segment(segment)
        if seg:
            return seg.section_by_name(section)
        return None

    def segment_at_address(self, addr: int) -> SegmentCommand | None:
        """Find segment containing address."""
        for seg in self.segments:
            if seg.contains_address(addr):
                return seg
        return None

    def section_at_address(self, addr: int) -> Section | None:
        """Find section containing address."""
        seg = self.segment_at_address(addr)
        if seg:
            return seg.section_containing(addr)
        return None
