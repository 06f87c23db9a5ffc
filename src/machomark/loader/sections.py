"""Section descriptors embedded in segment commands."""

from dataclasses import dataclass, field, replace

from machomark.loader.constants import (
    NAME_LENGTH,
    SECTION_ATTRIBUTES_MASK,
    SECTION_TYPE_MASK,
    ZERO_FILL_TYPES,
    SectionType,
)
from machomark.loader.layout import FieldSpec, RecordLayout, make_layout
from machomark.loader.reader import BinaryReader, decode_name
from machomark.loader.relocations import RelocationInfo, read_relocations


def _build_section_layout(is_64bit: bool) -> RecordLayout:
    word = FieldSpec.qword if is_64bit else FieldSpec.dword
    fields = [
        FieldSpec.chars("sectname", NAME_LENGTH),
        FieldSpec.chars("segname", NAME_LENGTH),
        word("addr"),
        word("size"),
        FieldSpec.dword("offset"),
        FieldSpec.dword("align"),
        FieldSpec.dword("reloff"),
        FieldSpec.dword("nreloc"),
        FieldSpec.dword("flags"),
        FieldSpec.dword("reserved1"),
        FieldSpec.dword("reserved2"),
    ]
    if is_64bit:
        fields.append(FieldSpec.dword("reserved3"))
    return make_layout("section_64" if is_64bit else "section", fields)


SECTION_LAYOUT = _build_section_layout(is_64bit=False)  # 68 bytes
SECTION_64_LAYOUT = _build_section_layout(is_64bit=True)  # 80 bytes


def section_layout(is_64bit: bool) -> RecordLayout:
    """Layout of a section descriptor for the given width."""
    return SECTION_64_LAYOUT if is_64bit else SECTION_LAYOUT


@dataclass(frozen=True)
class Section:
    """A section descriptor (section / section_64)."""

    sectname: bytes
    segname: bytes
    addr: int
    size: int
    offset: int
    align: int
    reloff: int
    nreloc: int
    flags: int
    reserved1: int
    reserved2: int
    reserved3: int = 0
    is_64bit: bool = True
    relocations: tuple[RelocationInfo, ...] = field(default=(), repr=False)

    @classmethod
    def decode(cls, reader: BinaryReader, is_64bit: bool) -> "Section":
        """Decode one descriptor at the reader's position.

        Relocation entries are not read here; see with_relocations().
        """
        read_word = reader.read_u64 if is_64bit else reader.read_u32

        sectname = reader.read_bytes(NAME_LENGTH)
        segname = reader.read_bytes(NAME_LENGTH)
        addr = read_word()
        size = read_word()
        offset = reader.read_u32()
        align = reader.read_u32()
        reloff = reader.read_u32()
        nreloc = reader.read_u32()
        flags = reader.read_u32()
        reserved1 = reader.read_u32()
        reserved2 = reader.read_u32()
        reserved3 = reader.read_u32() if is_64bit else 0

        return cls(
            sectname=sectname,
            segname=segname,
            addr=addr,
            size=size,
            offset=offset,
            align=align,
            reloff=reloff,
            nreloc=nreloc,
            flags=flags,
            reserved1=reserved1,
            reserved2=reserved2,
            reserved3=reserved3,
            is_64bit=is_64bit,
        )

    def with_relocations(self, reader: BinaryReader) -> "Section":
        """Return a copy with relocations decoded from reloff/nreloc."""
        if self.reloff <= 0:
            return self
        return replace(self, relocations=read_relocations(reader, self.reloff, self.nreloc))

    @property
    def name(self) -> str:
        return decode_name(self.sectname)

    @property
    def segment_name(self) -> str:
        return decode_name(self.segname)

    @property
    def address(self) -> int:
        return self.addr

    @property
    def end_address(self) -> int:
        return self.addr + self.size

    def contains_address(self, addr: int) -> bool:
        """True if addr lies in [address, address + size], end included."""
        return self.addr <= addr <= self.end_address

    @property
    def section_type(self) -> int:
        return self.flags & SECTION_TYPE_MASK

    @property
    def attributes(self) -> int:
        return self.flags & SECTION_ATTRIBUTES_MASK

    def has_attribute(self, mask: int) -> bool:
        return (self.attributes & mask) != 0

    @property
    def is_zero_fill(self) -> bool:
        """True if the section has no bytes in the file."""
        return self.section_type in ZERO_FILL_TYPES

    @property
    def type_name(self) -> str:
        try:
            return SectionType(self.section_type).name
        except ValueError:
            return f"{self.section_type:#x}"

    @property
    def layout(self) -> RecordLayout:
        return section_layout(self.is_64bit)

    def to_bytes(self, little_endian: bool = True) -> bytes:
        values = {
            "sectname": self.sectname,
            "segname": self.segname,
            "addr": self.addr,
            "size": self.size,
            "offset": self.offset,
            "align": self.align,
            "reloff": self.reloff,
            "nreloc": self.nreloc,
            "flags": self.flags,
            "reserved1": self.reserved1,
            "reserved2": self.reserved2,
            "reserved3": self.reserved3,
        }
        return self.layout.pack(values, little_endian)

    def summary(self) -> str:
        """Multi-line description used as the placed record's comment."""
        lines = [
            f"Section Name:  {self.name}",
            f"Segment Name:  {self.segment_name}",
            f"Address:       {self.addr:#x}",
            f"Size:          {self.size:#x}",
            f"Offset:        {self.offset:#x}",
            f"Alignment:     {self.align:#x}",
            f"Reloc Offset:  {self.reloff:#x}",
            f"Reloc Count:   {self.nreloc:#x}",
            f"Type:          {self.type_name}",
            f"Attributes:    {self.attributes:#x}",
        ]
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()
