"""Positioned byte cursor over an in-memory image."""

import struct

from machomark.errors import DecodeError


class BinaryReader:
    """Reads fixed-width values from a byte buffer, advancing a cursor.

    Reads past the end of the buffer raise DecodeError and leave the
    cursor where it was.
    """

    def __init__(
        self,
        data: bytes,
        offset: int = 0,
        little_endian: bool = True,
    ) -> None:
        self._data = memoryview(data).toreadonly()
        self._offset = offset
        self.little_endian = little_endian
        self._prefix = "<" if little_endian else ">"

    @property
    def position(self) -> int:
        return self._offset

    @property
    def remaining(self) -> int:
        return max(0, len(self._data) - self._offset)

    def __len__(self) -> int:
        return len(self._data)

    def seek(self, offset: int) -> None:
        """Move the cursor to an absolute offset."""
        if offset < 0:
            raise DecodeError(f"Cannot seek to negative offset {offset}", offset)
        self._offset = offset

    def clone(self, offset: int | None = None) -> "BinaryReader":
        """Create an independent reader over the same bytes."""
        return BinaryReader(
            self._data,
            self._offset if offset is None else offset,
            self.little_endian,
        )

    def _take(self, size: int, what: str) -> memoryview:
        start = self._offset
        end = start + size
        if end > len(self._data):
            raise DecodeError(
                f"Short read: {what} needs {size} bytes at {start:#x}, "
                f"only {self.remaining} available",
                start,
            )
        self._offset = end
        return self._data[start:end]

    def _unpack(self, fmt: str, what: str) -> int:
        size = struct.calcsize(fmt)
        return struct.unpack(self._prefix + fmt, self._take(size, what))[0]

    def read_u8(self) -> int:
        return self._unpack("B", "u8")

    def read_u16(self) -> int:
        return self._unpack("H", "u16")

    def read_u32(self) -> int:
        return self._unpack("I", "u32")

    def read_i32(self) -> int:
        return self._unpack("i", "i32")

    def read_u64(self) -> int:
        return self._unpack("Q", "u64")

    def read_bytes(self, size: int) -> bytes:
        return bytes(self._take(size, f"{size}-byte field"))

    def read_fixed_string(self, size: int) -> str:
        """Read a fixed-length text field, stopping at the first NUL."""
        raw = self.read_bytes(size)
        return decode_name(raw)


def decode_name(raw: bytes) -> str:
    """Decode a fixed-length name field that may lack a NUL terminator."""
    end = raw.find(b"\x00")
    if end != -1:
        raw = raw[:end]
    return raw.decode("utf-8", errors="replace")
