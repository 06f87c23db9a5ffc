"""Record layout descriptions for on-disk structures.

A RecordLayout lists a structure's fields in order with their widths. It is
used to describe records for display, to size placed records during markup,
and to re-encode decoded models.
"""

import struct
from dataclasses import dataclass
from collections.abc import Iterator, Mapping, Sequence


@dataclass(frozen=True)
class FieldSpec:
    """One field of a record layout."""

    name: str
    type_name: str
    size: int
    fmt: str  # struct format character(s) for this field

    @classmethod
    def dword(cls, name: str) -> "FieldSpec":
        return cls(name, "dword", 4, "I")

    @classmethod
    def qword(cls, name: str) -> "FieldSpec":
        return cls(name, "qword", 8, "Q")

    @classmethod
    def chars(cls, name: str, size: int) -> "FieldSpec":
        return cls(name, f"char[{size}]", size, f"{size}s")


@dataclass(frozen=True)
class RecordLayout:
    """Ordered field description of a fixed-size record."""

    name: str
    fields: tuple[FieldSpec, ...]

    @property
    def size(self) -> int:
        return sum(f.size for f in self.fields)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def struct_format(self, little_endian: bool = True) -> str:
        prefix = "<" if little_endian else ">"
        return prefix + "".join(f.fmt for f in self.fields)

    def describe(self) -> Iterator[tuple[int, str, str, int]]:
        """Yield (offset, name, type name, width) for each field."""
        offset = 0
        for f in self.fields:
            yield offset, f.name, f.type_name, f.size
            offset += f.size

    def pack(self, values: Mapping[str, int | bytes], little_endian: bool = True) -> bytes:
        """Encode field values in layout order."""
        missing = [name for name in self.field_names if name not in values]
        if missing:
            raise ValueError(f"{self.name}: missing fields {', '.join(missing)}")
        return struct.pack(
            self.struct_format(little_endian),
            *(values[name] for name in self.field_names),
        )

    def unpack(self, data: bytes, little_endian: bool = True) -> dict[str, int | bytes]:
        """Decode a record into a name -> value mapping."""
        if len(data) < self.size:
            raise ValueError(f"Data too small for {self.name}")
        raw = struct.unpack(self.struct_format(little_endian), data[: self.size])
        return dict(zip(self.field_names, raw))

    def __len__(self) -> int:
        return self.size


def make_layout(name: str, fields: Sequence[FieldSpec]) -> RecordLayout:
    return RecordLayout(name, tuple(fields))
