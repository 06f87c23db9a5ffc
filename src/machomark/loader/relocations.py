"""Relocation entries referenced by sections."""

from dataclasses import dataclass

from machomark.loader.constants import R_SCATTERED, RELOCATION_INFO_SIZE
from machomark.loader.layout import FieldSpec, RecordLayout, make_layout
from machomark.loader.reader import BinaryReader


RELOCATION_LAYOUT = make_layout(
    "relocation_info",
    [FieldSpec.dword("r_address"), FieldSpec.dword("r_info")],
)

SCATTERED_RELOCATION_LAYOUT = make_layout(
    "scattered_relocation_info",
    [FieldSpec.dword("r_info"), FieldSpec.dword("r_value")],
)


def relocation_layout(scattered: bool = False) -> RecordLayout:
    """Layout of a plain or scattered relocation entry (both 8 bytes)."""
    return SCATTERED_RELOCATION_LAYOUT if scattered else RELOCATION_LAYOUT


@dataclass(frozen=True)
class RelocationInfo:
    """A relocation_info or scattered_relocation_info entry."""

    address: int
    symbol_num: int
    value: int
    pcrel: int
    length: int
    extern: int
    type: int
    scattered: bool
    word0: int
    word1: int

    @classmethod
    def decode(cls, reader: BinaryReader) -> "RelocationInfo":
        """Decode one 8-byte entry at the reader's position."""
        word0 = reader.read_u32()
        word1 = reader.read_u32()
        return cls.from_words(word0, word1)

    @classmethod
    def from_words(cls, word0: int, word1: int) -> "RelocationInfo":
        if word0 & R_SCATTERED:
            return cls(
                address=word0 & 0xFFFFFF,
                symbol_num=0,
                value=word1,
                pcrel=(word0 >> 30) & 0x1,
                length=(word0 >> 28) & 0x3,
                extern=0,
                type=(word0 >> 24) & 0xF,
                scattered=True,
                word0=word0,
                word1=word1,
            )
        return cls(
            address=word0,
            symbol_num=word1 & 0xFFFFFF,
            value=0,
            pcrel=(word1 >> 24) & 0x1,
            length=(word1 >> 25) & 0x3,
            extern=(word1 >> 27) & 0x1,
            type=(word1 >> 28) & 0xF,
            scattered=False,
            word0=word0,
            word1=word1,
        )

    @property
    def layout(self) -> RecordLayout:
        return relocation_layout(self.scattered)

    @property
    def size(self) -> int:
        return RELOCATION_INFO_SIZE

    def to_bytes(self, little_endian: bool = True) -> bytes:
        names = self.layout.field_names
        return self.layout.pack(
            {names[0]: self.word0, names[1]: self.word1}, little_endian
        )

    def summary(self) -> str:
        """One-line description used as the placed record's comment."""
        if self.scattered:
            return (
                f"Scattered Relocation: address={self.address:#x} "
                f"value={self.value:#x} type={self.type} "
                f"length={self.length} pcrel={self.pcrel}"
            )
        return (
            f"Relocation: address={self.address:#x} "
            f"symbolnum={self.symbol_num} type={self.type} "
            f"length={self.length} pcrel={self.pcrel} extern={self.extern}"
        )

    def __repr__(self) -> str:
        kind = "scattered" if self.scattered else "plain"
        return f"RelocationInfo({self.address:#x}, {kind}, type={self.type})"


def read_relocations(reader: BinaryReader, offset: int, count: int) -> tuple[RelocationInfo, ...]:
    """Decode count entries starting at offset without moving reader."""
    if offset <= 0 or count <= 0:
        return ()
    cursor = reader.clone(offset)
    return tuple(RelocationInfo.decode(cursor) for _ in range(count))
