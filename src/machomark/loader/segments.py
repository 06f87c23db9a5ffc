"""Segment load commands (segment_command / segment_command_64)."""

from dataclasses import dataclass, field

from machomark.loader.constants import (
    KERNEL_ADDRESS_BITS,
    KERNEL_TAG_MASK,
    NAME_LENGTH,
    LoadCommand,
    SegmentFlags,
    VMProtection,
)
from machomark.loader.layout import FieldSpec, RecordLayout, make_layout
from machomark.loader.reader import BinaryReader, decode_name
from machomark.loader.sections import Section


LOAD_COMMAND_HEADER_SIZE = 8


def canonicalize_address(address: int) -> int:
    """Rewrite kernelcache-tagged addresses into canonical kernel space.

    Segment addresses in kernelcaches may carry a chained fixup tag in bits
    36-47. When all of those bits are set the top 16 bits are forced to
    ones; any other address is returned unchanged.
    """
    if (address & KERNEL_TAG_MASK) == KERNEL_TAG_MASK:
        return address | KERNEL_ADDRESS_BITS
    return address


def _build_segment_layout(is_64bit: bool) -> RecordLayout:
    word = FieldSpec.qword if is_64bit else FieldSpec.dword
    return make_layout(
        "segment_command_64" if is_64bit else "segment_command",
        [
            FieldSpec.dword("cmd"),
            FieldSpec.dword("cmdsize"),
            FieldSpec.chars("segname", NAME_LENGTH),
            word("vmaddr"),
            word("vmsize"),
            word("fileoff"),
            word("filesize"),
            FieldSpec.dword("maxprot"),
            FieldSpec.dword("initprot"),
            FieldSpec.dword("nsects"),
            FieldSpec.dword("flags"),
        ],
    )


SEGMENT_COMMAND_LAYOUT = _build_segment_layout(is_64bit=False)  # 56 bytes
SEGMENT_COMMAND_64_LAYOUT = _build_segment_layout(is_64bit=True)  # 72 bytes


def segment_command_layout(is_64bit: bool) -> RecordLayout:
    """Layout of the fixed segment command header for the given width."""
    return SEGMENT_COMMAND_64_LAYOUT if is_64bit else SEGMENT_COMMAND_LAYOUT


@dataclass(frozen=True)
class LoadCommandHeader:
    """Generic cmd/cmdsize prefix shared by every load command."""

    cmd: int
    cmdsize: int
    start_index: int

    @classmethod
    def read(cls, reader: BinaryReader) -> "LoadCommandHeader":
        start = reader.position
        cmd = reader.read_u32()
        cmdsize = reader.read_u32()
        return cls(cmd=cmd, cmdsize=cmdsize, start_index=start)

    @property
    def command_type(self) -> LoadCommand | None:
        try:
            return LoadCommand(self.cmd)
        except ValueError:
            return None


@dataclass(frozen=True)
class SegmentCommand:
    """A decoded segment load command and its section descriptors.

    The model is immutable apart from fileoff, which the loading pipeline
    may patch through set_file_offset() after the image is relocated.
    fileoff does not take part in hashing, so a patched command hashes the
    same as before.
    """

    header: LoadCommandHeader
    is_64bit: bool
    segname: bytes
    vmaddr: int
    vmsize: int
    fileoff: int = field(hash=False)
    filesize: int
    maxprot: int
    initprot: int
    nsects: int
    flags: int
    sections: tuple[Section, ...] = field(default=(), repr=False)
    little_endian: bool = field(default=True, repr=False)

    @classmethod
    def decode(
        cls,
        reader: BinaryReader,
        is_64bit: bool,
        header: LoadCommandHeader | None = None,
        load_relocations: bool = True,
    ) -> "SegmentCommand":
        """Decode a segment command from a reader positioned after cmd/cmdsize.

        Exactly nsects section descriptors are decoded after the fixed
        header. Relocation entries are read from a separate cursor so the
        reader ends up just past the last section. Any short read raises
        DecodeError and nothing is returned.
        """
        if header is None:
            header = cls._implied_header(reader, is_64bit)

        read_word = reader.read_u64 if is_64bit else reader.read_u32

        segname = reader.read_bytes(NAME_LENGTH)
        vmaddr = read_word()
        vmsize = read_word()
        fileoff = read_word()
        filesize = read_word()
        maxprot = reader.read_u32()
        initprot = reader.read_u32()
        nsects = reader.read_u32()
        flags = reader.read_u32()

        sections = []
        for _ in range(nsects):
            section = Section.decode(reader, is_64bit)
            if load_relocations:
                section = section.with_relocations(reader)
            sections.append(section)

        return cls(
            header=header,
            is_64bit=is_64bit,
            segname=segname,
            vmaddr=vmaddr,
            vmsize=vmsize,
            fileoff=fileoff,
            filesize=filesize,
            maxprot=maxprot,
            initprot=initprot,
            nsects=nsects,
            flags=flags,
            sections=tuple(sections),
            little_endian=reader.little_endian,
        )

    @staticmethod
    def _implied_header(reader: BinaryReader, is_64bit: bool) -> LoadCommandHeader:
        # The caller already consumed cmd/cmdsize; re-read them without
        # moving the cursor when they are there. Otherwise the command is
        # assumed to start one header before the cursor.
        start = reader.position - LOAD_COMMAND_HEADER_SIZE
        if start >= 0:
            return LoadCommandHeader.read(reader.clone(start))
        cmd = LoadCommand.LC_SEGMENT_64 if is_64bit else LoadCommand.LC_SEGMENT
        return LoadCommandHeader(int(cmd), 0, start)

    # Queries

    @property
    def name(self) -> str:
        return decode_name(self.segname)

    @property
    def command_name(self) -> str:
        return self.layout().name

    @property
    def virtual_address(self) -> int:
        """vmaddr with kernelcache tags canonicalized; vmaddr is untouched."""
        return canonicalize_address(self.vmaddr)

    @property
    def end_address(self) -> int:
        return self.virtual_address + self.vmsize

    def contains_address(self, addr: int) -> bool:
        return self.virtual_address <= addr < self.end_address

    def section_containing(self, address: int) -> Section | None:
        """First section, in declared order, whose range includes address.

        Ranges are inclusive at both ends and may overlap; the earliest
        declared match wins.
        """
        for section in self.sections:
            if section.contains_address(address):
                return section
        return None

    def section_by_name(self, name: str) -> Section | None:
        """First section with the given name."""
        for section in self.sections:
            if section.name == name:
                return section
        return None

    # Alias matching the loader's other lookups
    get_section = section_by_name

    @property
    def max_protection(self) -> VMProtection:
        return VMProtection(self.maxprot & 0x7)

    @property
    def initial_protection(self) -> VMProtection:
        return VMProtection(self.initprot & 0x7)

    @property
    def is_readable(self) -> bool:
        return (self.initprot & VMProtection.READ) != 0

    @property
    def is_writable(self) -> bool:
        return (self.initprot & VMProtection.WRITE) != 0

    @property
    def is_executable(self) -> bool:
        return (self.initprot & VMProtection.EXECUTE) != 0

    @property
    def is_protected(self) -> bool:
        """True if the segment's payload is encrypted."""
        return (self.flags & SegmentFlags.PROTECTED_VERSION_1) != 0

    @property
    def protection_string(self) -> str:
        return "".join(
            ch if self.initprot & bit else "-"
            for ch, bit in (
                ("r", VMProtection.READ),
                ("w", VMProtection.WRITE),
                ("x", VMProtection.EXECUTE),
            )
        )

    # Mutation

    def set_file_offset(self, offset: int) -> None:
        """Patch fileoff after construction.

        This is the only field that may change once decoded; it is used by
        the loading pipeline when segment file offsets are rebased.
        """
        limit = 1 << (64 if self.is_64bit else 32)
        if not 0 <= offset < limit:
            raise ValueError(f"Invalid file offset: {offset:#x}")
        object.__setattr__(self, "fileoff", offset)

    # Layout and encoding

    def layout(self) -> RecordLayout:
        return segment_command_layout(self.is_64bit)

    def to_bytes(self) -> bytes:
        """Re-encode the command header followed by its section table."""
        values = {
            "cmd": self.header.cmd,
            "cmdsize": self.header.cmdsize,
            "segname": self.segname,
            "vmaddr": self.vmaddr,
            "vmsize": self.vmsize,
            "fileoff": self.fileoff,
            "filesize": self.filesize,
            "maxprot": self.maxprot,
            "initprot": self.initprot,
            "nsects": self.nsects,
            "flags": self.flags,
        }
        data = self.layout().pack(values, self.little_endian)
        return data + b"".join(s.to_bytes(self.little_endian) for s in self.sections)

    def __str__(self) -> str:
        return self.name


def decode_segment(
    reader: BinaryReader,
    is_64bit: bool,
    header: LoadCommandHeader | None = None,
    load_relocations: bool = True,
) -> SegmentCommand:
    """Decode a segment command; see SegmentCommand.decode."""
    return SegmentCommand.decode(reader, is_64bit, header, load_relocations)
