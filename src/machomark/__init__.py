"""machomark - Mach-O segment command decoding and layout markup."""

from pathlib import Path

from machomark.errors import DecodeError, AnnotationError, MachoMarkError
from machomark.loader import (
    Section,
    MachOBinary,
    BinaryReader,
    RecordLayout,
    SegmentCommand,
    RelocationInfo,
    LoadCommandHeader,
    decode_segment,
    canonicalize_address,
)
from machomark.markup import (
    MessageLog,
    TaskMonitor,
    RecordingSink,
    annotate,
    annotate_image,
)
from machomark.project import ProjectDatabase

__version__ = "0.1.0"
__all__ = [
    "Project",
    "MachOBinary",
    "BinaryReader",
    "RecordLayout",
    "SegmentCommand",
    "Section",
    "RelocationInfo",
    "LoadCommandHeader",
    "decode_segment",
    "canonicalize_address",
    "annotate",
    "annotate_image",
    "MessageLog",
    "TaskMonitor",
    "RecordingSink",
    "ProjectDatabase",
    "DecodeError",
    "AnnotationError",
    "MachoMarkError",
]


class Project:
    """Main entry point: a loaded binary plus its markup database."""

    def __init__(
        self,
        binary_path: str | Path | None = None,
        db_path: str | Path | None = None,
    ) -> None:
        self.binary: MachOBinary | None = None
        self.db = ProjectDatabase(db_path)
        self.log = MessageLog()
        self._marked_up = False

        if binary_path:
            self._load_binary(binary_path)

    @classmethod
    def load(cls, path: str | Path, db_path: str | Path | None = None) -> "Project":
        """Load a binary and create a project."""
        project = cls(db_path=db_path)
        project._load_binary(path)
        return project

    def _load_binary(self, path: str | Path) -> None:
        """Load a binary file."""
        self.binary = MachOBinary.load(path)

        # Store in database
        import hashlib

        sha256 = hashlib.sha256(self.binary.data).hexdigest()

        self.db.set_binary_info(
            str(path),
            sha256,
            self.binary.header.file_type_name,
        )

    def markup(
        self,
        image_base: int = 0,
        monitor: TaskMonitor | None = None,
    ) -> MessageLog:
        """Mark up every segment command into the project database.

        Raises ValueError if image_base is not an unsigned 64-bit address.
        """
        if not self.binary:
            raise ValueError("No binary loaded")

        self.db.set_image_base(image_base)
        annotate_image(self.binary, self.db, monitor, self.log, image_base)
        self._marked_up = True
        return self.log

    @property
    def marked_up(self) -> bool:
        return self._marked_up

    @property
    def segments(self) -> list[SegmentCommand]:
        """Get binary segments."""
        if not self.binary:
            return []
        return self.binary.segments

    def get_segment(self, name: str) -> SegmentCommand | None:
        if not self.binary:
            return None
        return self.binary.get_segment(name)

    def section_at(self, address: int) -> Section | None:
        """Get the section containing a virtual address."""
        if not self.binary:
            raise ValueError("No binary loaded")
        return self.binary.section_at_address(address)

    def close(self) -> None:
        """Close the project."""
        self.db.close()

    def __enter__(self) -> "Project":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def main() -> None:
    """Entry point for CLI."""
    from machomark.cli import main as cli_main

    cli_main()
