"""Mach-O constants used by the segment, section and relocation decoders."""

from enum import IntEnum, IntFlag


# Mach-O magic numbers
MH_MAGIC = 0xFEEDFACE
MH_CIGAM = 0xCEFAEDFE  # Byte-swapped
MH_MAGIC_64 = 0xFEEDFACF
MH_CIGAM_64 = 0xCFFAEDFE  # Byte-swapped

# Header sizes
MACH_HEADER_SIZE = 28
MACH_HEADER_64_SIZE = 32

# Fixed width of segment and section name fields
NAME_LENGTH = 16


class FileType(IntEnum):
    """Mach-O file types (mach_header.filetype)."""

    MH_OBJECT = 0x1
    MH_EXECUTE = 0x2
    MH_FVMLIB = 0x3
    MH_CORE = 0x4
    MH_PRELOAD = 0x5
    MH_DYLIB = 0x6
    MH_DYLINKER = 0x7
    MH_BUNDLE = 0x8
    MH_DYLIB_STUB = 0x9  # Shared library stub, sections carry no bytes
    MH_DSYM = 0xA
    MH_KEXT_BUNDLE = 0xB
    MH_FILESET = 0xC


class LoadCommand(IntEnum):
    """Load command types this package knows by name."""

    LC_SEGMENT = 0x1
    LC_SYMTAB = 0x2
    LC_DYSYMTAB = 0xB
    LC_LOAD_DYLIB = 0xC
    LC_ID_DYLIB = 0xD
    LC_SEGMENT_64 = 0x19
    LC_UUID = 0x1B
    LC_CODE_SIGNATURE = 0x1D
    LC_ENCRYPTION_INFO = 0x21
    LC_DYLD_INFO = 0x22
    LC_FUNCTION_STARTS = 0x26
    LC_MAIN = 0x80000028
    LC_DATA_IN_CODE = 0x29
    LC_SOURCE_VERSION = 0x2A
    LC_ENCRYPTION_INFO_64 = 0x2C
    LC_BUILD_VERSION = 0x32
    LC_DYLD_EXPORTS_TRIE = 0x80000033
    LC_DYLD_CHAINED_FIXUPS = 0x80000034
    LC_FILESET_ENTRY = 0x80000035


class VMProtection(IntFlag):
    """Virtual memory protection bits (vm_prot_t)."""

    NONE = 0x0
    READ = 0x1
    WRITE = 0x2
    EXECUTE = 0x4


class SegmentFlags(IntFlag):
    """Segment command flags."""

    HIGHVM = 0x1
    FVMLIB = 0x2
    NORELOC = 0x4
    PROTECTED_VERSION_1 = 0x8  # Payload is encrypted
    READ_ONLY = 0x10


# Section flags split into a type byte and 24 attribute bits
SECTION_TYPE_MASK = 0x000000FF
SECTION_ATTRIBUTES_MASK = 0xFFFFFF00


class SectionType(IntEnum):
    """Section types (low byte of section.flags)."""

    S_REGULAR = 0x0
    S_ZEROFILL = 0x1
    S_CSTRING_LITERALS = 0x2
    S_4BYTE_LITERALS = 0x3
    S_8BYTE_LITERALS = 0x4
    S_LITERAL_POINTERS = 0x5
    S_NON_LAZY_SYMBOL_POINTERS = 0x6
    S_LAZY_SYMBOL_POINTERS = 0x7
    S_SYMBOL_STUBS = 0x8
    S_MOD_INIT_FUNC_POINTERS = 0x9
    S_MOD_TERM_FUNC_POINTERS = 0xA
    S_COALESCED = 0xB
    S_GB_ZEROFILL = 0xC
    S_INTERPOSING = 0xD
    S_16BYTE_LITERALS = 0xE
    S_DTRACE_DOF = 0xF
    S_LAZY_DYLIB_SYMBOL_POINTERS = 0x10
    S_THREAD_LOCAL_REGULAR = 0x11
    S_THREAD_LOCAL_ZEROFILL = 0x12
    S_THREAD_LOCAL_VARIABLES = 0x13
    S_THREAD_LOCAL_VARIABLE_POINTERS = 0x14
    S_THREAD_LOCAL_INIT_FUNCTION_POINTERS = 0x15
    S_INIT_FUNC_OFFSETS = 0x16


# Types whose contents are zero-filled at load time and have no file bytes
ZERO_FILL_TYPES = frozenset(
    {
        SectionType.S_ZEROFILL,
        SectionType.S_GB_ZEROFILL,
        SectionType.S_THREAD_LOCAL_ZEROFILL,
    }
)


class SectionAttribute(IntFlag):
    """Section attribute bits (high 24 bits of section.flags)."""

    S_ATTR_PURE_INSTRUCTIONS = 0x80000000
    S_ATTR_NO_TOC = 0x40000000
    S_ATTR_STRIP_STATIC_SYMS = 0x20000000
    S_ATTR_NO_DEAD_STRIP = 0x10000000
    S_ATTR_LIVE_SUPPORT = 0x08000000
    S_ATTR_SELF_MODIFYING_CODE = 0x04000000
    S_ATTR_DEBUG = 0x02000000
    S_ATTR_SOME_INSTRUCTIONS = 0x00000400
    S_ATTR_EXT_RELOC = 0x00000200
    S_ATTR_LOC_RELOC = 0x00000100


# Relocation entries
RELOCATION_INFO_SIZE = 8
R_SCATTERED = 0x80000000

# Kernelcache segment addresses may carry a chained fixup tag in bits 36-47
KERNEL_TAG_MASK = 0x0000FFF000000000
KERNEL_ADDRESS_BITS = 0xFFFF000000000000
