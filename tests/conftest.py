"""Shared fixtures that synthesize Mach-O images."""

import struct

import pytest

from machomark.loader.constants import (
    MH_MAGIC,
    MH_MAGIC_64,
    FileType,
    LoadCommand,
    SectionType,
    SectionAttribute,
)


CPU_TYPE_ARM64 = 0x0100000C


def pack_section(
    sectname: str,
    segname: str,
    addr: int,
    size: int,
    offset: int,
    align: int = 0,
    reloff: int = 0,
    nreloc: int = 0,
    flags: int = 0,
    is_64bit: bool = True,
    little_endian: bool = True,
) -> bytes:
    """Encode a section / section_64 descriptor."""
    prefix = "<" if little_endian else ">"
    word = "Q" if is_64bit else "I"
    fmt = prefix + f"16s16s{word}{word}IIIIIII" + ("I" if is_64bit else "")
    values = [
        sectname.encode(),
        segname.encode(),
        addr,
        size,
        offset,
        align,
        reloff,
        nreloc,
        flags,
        0,
        0,
    ]
    if is_64bit:
        values.append(0)
    return struct.pack(fmt, *values)


def pack_segment(
    segname: str,
    vmaddr: int,
    vmsize: int,
    fileoff: int,
    filesize: int,
    sections: list[bytes] = (),
    maxprot: int = 7,
    initprot: int = 5,
    flags: int = 0,
    nsects: int | None = None,
    is_64bit: bool = True,
    little_endian: bool = True,
) -> bytes:
    """Encode a segment command followed by its section descriptors."""
    prefix = "<" if little_endian else ">"
    word = "Q" if is_64bit else "I"
    fmt = prefix + f"II16s{word}{word}{word}{word}IIII"
    cmd = LoadCommand.LC_SEGMENT_64 if is_64bit else LoadCommand.LC_SEGMENT
    body = b"".join(sections)
    cmdsize = struct.calcsize(fmt) + len(body)
    header = struct.pack(
        fmt,
        cmd,
        cmdsize,
        segname.encode(),
        vmaddr,
        vmsize,
        fileoff,
        filesize,
        maxprot,
        initprot,
        len(sections) if nsects is None else nsects,
        flags,
    )
    return header + body


def pack_relocation(
    address: int,
    symbolnum: int = 0,
    pcrel: int = 0,
    length: int = 2,
    extern: int = 0,
    rtype: int = 0,
    little_endian: bool = True,
) -> bytes:
    """Encode a plain relocation_info entry."""
    info = (
        (symbolnum & 0xFFFFFF)
        | (pcrel << 24)
        | (length << 25)
        | (extern << 27)
        | (rtype << 28)
    )
    return struct.pack("<II" if little_endian else ">II", address, info)


def pack_macho(
    commands: list[bytes],
    filetype: int = FileType.MH_EXECUTE,
    is_64bit: bool = True,
    little_endian: bool = True,
) -> bytes:
    """Encode a Mach-O header followed by load commands."""
    prefix = "<" if little_endian else ">"
    sizeofcmds = sum(len(c) for c in commands)
    if is_64bit:
        header = struct.pack(
            prefix + "IIIIIIII",
            MH_MAGIC_64,
            CPU_TYPE_ARM64,
            0,
            filetype,
            len(commands),
            sizeofcmds,
            0,
            0,
        )
    else:
        header = struct.pack(
            prefix + "IIIIIII",
            MH_MAGIC,
            7,
            3,
            filetype,
            len(commands),
            sizeofcmds,
            0,
        )
    return header + b"".join(commands)


def build_sample_image(filetype: int = FileType.MH_EXECUTE) -> bytes:
    """A 64-bit image with __TEXT and __DATA segments.

    File layout:
        0x000  mach_header_64 + two segment commands
        0x400  __text (0x100 bytes, 2 relocations at 0x700)
        0x500  __cstring (0x20 bytes)
        0x600  __data (0x40 bytes)
        0x700  relocation entries for __text
        __bss is zero-fill and has no bytes
    """
    text_flags = (
        SectionType.S_REGULAR
        | SectionAttribute.S_ATTR_PURE_INSTRUCTIONS
        | SectionAttribute.S_ATTR_SOME_INSTRUCTIONS
    )
    text = pack_segment(
        "__TEXT",
        vmaddr=0x100000000,
        vmsize=0x1000,
        fileoff=0,
        filesize=0x600,
        maxprot=5,
        initprot=5,
        sections=[
            pack_section(
                "__text", "__TEXT", 0x100000400, 0x100, 0x400,
                align=2, reloff=0x700, nreloc=2, flags=text_flags,
            ),
            pack_section(
                "__cstring", "__TEXT", 0x100000500, 0x20, 0x500,
                flags=SectionType.S_CSTRING_LITERALS,
            ),
        ],
    )
    data = pack_segment(
        "__DATA",
        vmaddr=0x100001000,
        vmsize=0x1000,
        fileoff=0x600,
        filesize=0x100,
        maxprot=3,
        initprot=3,
        sections=[
            pack_section("__data", "__DATA", 0x100001000, 0x40, 0x600, align=3),
            pack_section(
                "__bss", "__DATA", 0x100001040, 0x200, 0,
                align=3, flags=SectionType.S_ZEROFILL,
            ),
        ],
    )

    image = bytearray(pack_macho([text, data], filetype=filetype))
    image.extend(b"\x00" * (0x400 - len(image)))
    image.extend(b"\xc0\x03\x5f\xd6" * 0x40)  # __text
    image.extend(b"hello\x00".ljust(0x20, b"\x00"))  # __cstring
    image.extend(b"\x00" * (0x700 - len(image)))  # __data
    image.extend(pack_relocation(0x10, symbolnum=1, pcrel=1, rtype=2, extern=1))
    image.extend(pack_relocation(0x20, symbolnum=2, rtype=3))
    return bytes(image)


@pytest.fixture
def sample_image() -> bytes:
    return build_sample_image()


@pytest.fixture
def sample_path(tmp_path, sample_image):
    path = tmp_path / "sample"
    path.write_bytes(sample_image)
    return path
