"""SQLite-based project database that records markup."""

import json
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from machomark.loader.layout import RecordLayout
from machomark.project.annotations import Annotation, AnnotationType

ADDRESS_SPAN = 1 << 64
SIGNED_LIMIT = 1 << 63

# Unsigned ordering of addresses stored by to_db_address
ADDRESS_ORDER = "address < 0, address"


def to_db_address(address: int) -> int:
    """Map an unsigned 64-bit address onto SQLite's signed INTEGER."""
    if not 0 <= address < ADDRESS_SPAN:
        raise ValueError(f"Address out of range: {address:#x}")
    if address >= SIGNED_LIMIT:
        return address - ADDRESS_SPAN
    return address


def from_db_address(value: int) -> int:
    return value + ADDRESS_SPAN if value < 0 else value


@dataclass
class DataRecord:
    """A typed record placed over image bytes."""

    address: int
    layout: str
    length: int
    fields: list[str]


@dataclass
class LabelRecord:
    """Stored label."""

    address: int
    name: str


@dataclass
class FragmentRecord:
    """Stored byte-range fragment."""

    name: str
    address: int
    length: int

    @property
    def end_address(self) -> int:
        return self.address + self.length


class ProjectDatabase:
    """SQLite database for project persistence.

    Implements the markup sink interface; every write is an upsert so a
    markup pass can be re-run over the same database.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path | str | None = None) -> None:
        """Initialize database, in-memory if no path given."""
        if db_path:
            self._path = Path(db_path)
            self._conn = sqlite3.connect(str(self._path))
        else:
            self._path = None
            self._conn = sqlite3.connect(":memory:")

        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create database schema."""
        cursor = self._conn.cursor()

        # Metadata table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT
            )
        """)

        # Binary info
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS binary_info (
                id INTEGER PRIMARY KEY,
                path TEXT,
                sha256 TEXT,
                file_type TEXT,
                image_base INTEGER,
                loaded_at TEXT
            )
        """)

        # Placed records
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS data_records (
                address INTEGER PRIMARY KEY,
                layout TEXT,
                length INTEGER,
                fields TEXT
            )
        """)

        # Labels
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS labels (
                address INTEGER,
                name TEXT,
                PRIMARY KEY (address, name)
            )
        """)
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_labels_name ON labels(name)")

        # Fragments
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS fragments (
                id INTEGER PRIMARY KEY,
                name TEXT,
                address INTEGER,
                length INTEGER,
                UNIQUE (name, address, length)
            )
        """)

        # Annotations
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS annotations (
                id INTEGER PRIMARY KEY,
                address INTEGER,
                annotation_type INTEGER,
                value TEXT,
                metadata TEXT
            )
        """)
        cursor.execute(
            "CREATE INDEX IF NOT EXISTS idx_annotations_addr ON annotations(address)"
        )

        # Set schema version
        cursor.execute(
            "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
            ("schema_version", str(self.SCHEMA_VERSION)),
        )

        self._conn.commit()

    def close(self) -> None:
        """Close database connection."""
        self._conn.close()

    def __enter__(self) -> "ProjectDatabase":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # Binary info methods

    def set_binary_info(
        self,
        path: str,
        sha256: str,
        file_type: str,
        image_base: int = 0,
    ) -> None:
        """Store binary metadata."""
        from datetime import datetime

        cursor = self._conn.cursor()
        cursor.execute(
            """
            INSERT OR REPLACE INTO binary_info (id, path, sha256, file_type, image_base, loaded_at)
            VALUES (1, ?, ?, ?, ?, ?)
            """,
            (path, sha256, file_type, to_db_address(image_base), datetime.now().isoformat()),
        )
        self._conn.commit()

    def get_binary_info(self) -> dict[str, Any] | None:
        """Get stored binary metadata."""
        cursor = self._conn.cursor()
        cursor.execute("SELECT * FROM binary_info WHERE id = 1")
        row = cursor.fetchone()
        if row:
            info = dict(row)
            info["image_base"] = from_db_address(info["image_base"])
            return info
        return None

    def set_image_base(self, image_base: int) -> None:
        """Record the image base the markup was placed at."""
        cursor = self._conn.cursor()
        cursor.execute(
            "UPDATE binary_info SET image_base = ? WHERE id = 1",
            (to_db_address(image_base),),
        )
        self._conn.commit()

    # Sink methods

    def create_data(self, address: int, layout: RecordLayout, comment: str = "") -> None:
        """Place a typed record at address, replacing any previous one."""
        cursor = self._conn.cursor()
        cursor.execute(
            """
            INSERT OR REPLACE INTO data_records (address, layout, length, fields)
            VALUES (?, ?, ?, ?)
            """,
            (
                to_db_address(address),
                layout.name,
                layout.size,
                json.dumps(layout.field_names),
            ),
        )
        self._conn.commit()
        if comment:
            self.set_comment(address, comment)

    def create_label(self, address: int, name: str) -> None:
        """Name an address."""
        if not name:
            raise ValueError(f"Empty label name at {address:#x}")
        cursor = self._conn.cursor()
        cursor.execute(
            "INSERT OR IGNORE INTO labels (address, name) VALUES (?, ?)",
            (to_db_address(address), name),
        )
        self._conn.commit()

    def create_fragment(self, name: str, address: int, length: int) -> None:
        """Record a named byte range."""
        if length < 0:
            raise ValueError(f"Invalid fragment length {length} for {name}")
        cursor = self._conn.cursor()
        cursor.execute(
            """
            INSERT OR IGNORE INTO fragments (name, address, length)
            VALUES (?, ?, ?)
            """,
            (name, to_db_address(address), length),
        )
        self._conn.commit()

    # Query methods

    @staticmethod
    def _data_record(row: sqlite3.Row) -> DataRecord:
        return DataRecord(
            address=from_db_address(row["address"]),
            layout=row["layout"],
            length=row["length"],
            fields=json.loads(row["fields"]),
        )

    def get_data(self, address: int) -> DataRecord | None:
        """Get the record placed at address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT address, layout, length, fields FROM data_records WHERE address = ?",
            (to_db_address(address),),
        )
        row = cursor.fetchone()
        if row:
            return self._data_record(row)
        return None

    def get_all_data(self) -> list[DataRecord]:
        """Get all placed records ordered by address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT address, layout, length, fields FROM data_records "
            f"ORDER BY {ADDRESS_ORDER}"
        )
        return [self._data_record(row) for row in cursor.fetchall()]

    def get_labels(self, address: int) -> list[str]:
        """Get all label names at an address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT name FROM labels WHERE address = ? ORDER BY name",
            (to_db_address(address),),
        )
        return [row["name"] for row in cursor.fetchall()]

    def get_label_address(self, name: str) -> int | None:
        """Get the lowest address carrying a label."""
        cursor = self._conn.cursor()
        cursor.execute(
            f"SELECT address FROM labels WHERE name = ? ORDER BY {ADDRESS_ORDER} LIMIT 1",
            (name,),
        )
        row = cursor.fetchone()
        return from_db_address(row["address"]) if row else None

    def get_all_labels(self) -> list[LabelRecord]:
        """Get all labels ordered by address."""
        cursor = self._conn.cursor()
        cursor.execute(f"SELECT address, name FROM labels ORDER BY {ADDRESS_ORDER}, name")
        return [
            LabelRecord(address=from_db_address(row["address"]), name=row["name"])
            for row in cursor.fetchall()
        ]

    def get_fragments(self, name: str | None = None) -> list[FragmentRecord]:
        """Get fragments, optionally only those with a given name."""
        cursor = self._conn.cursor()
        if name is None:
            cursor.execute(
                f"SELECT name, address, length FROM fragments ORDER BY {ADDRESS_ORDER}, name"
            )
        else:
            cursor.execute(
                "SELECT name, address, length FROM fragments WHERE name = ? "
                f"ORDER BY {ADDRESS_ORDER}",
                (name,),
            )
        return [
            FragmentRecord(
                name=row["name"],
                address=from_db_address(row["address"]),
                length=row["length"],
            )
            for row in cursor.fetchall()
        ]

    # Annotation methods

    def add_annotation(self, annotation: Annotation) -> int:
        """Add an annotation, returns ID."""
        cursor = self._conn.cursor()
        cursor.execute(
            """
            INSERT INTO annotations (address, annotation_type, value, metadata)
            VALUES (?, ?, ?, ?)
            """,
            (
                to_db_address(annotation.address),
                annotation.annotation_type.value,
                annotation.value,
                json.dumps(annotation.metadata) if annotation.metadata else None,
            ),
        )
        self._conn.commit()
        return cursor.lastrowid or 0

    def get_annotations(self, address: int) -> list[Annotation]:
        """Get all annotations at an address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT address, annotation_type, value, metadata FROM annotations WHERE address = ?",
            (to_db_address(address),),
        )
        return [
            Annotation(
                address=from_db_address(row["address"]),
                annotation_type=AnnotationType(row["annotation_type"]),
                value=row["value"],
                metadata=json.loads(row["metadata"]) if row["metadata"] else None,
            )
            for row in cursor.fetchall()
        ]

    def set_comment(self, address: int, comment: str) -> None:
        """Set or update comment at address."""
        # Remove existing comments
        cursor = self._conn.cursor()
        cursor.execute(
            "DELETE FROM annotations WHERE address = ? AND annotation_type = ?",
            (to_db_address(address), AnnotationType.COMMENT.value),
        )
        self._conn.commit()
        if comment:
            self.add_annotation(
                Annotation(address, AnnotationType.COMMENT, comment)
            )

    def get_comment(self, address: int) -> str | None:
        """Get comment at address."""
        cursor = self._conn.cursor()
        cursor.execute(
            "SELECT value FROM annotations WHERE address = ? AND annotation_type = ?",
            (to_db_address(address), AnnotationType.COMMENT.value),
        )
        row = cursor.fetchone()
        return row["value"] if row else None
