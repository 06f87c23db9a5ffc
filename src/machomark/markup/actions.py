"""Annotation actions and the sinks that carry them out."""

from dataclasses import dataclass
from typing import Protocol

from machomark.loader.layout import RecordLayout


class AnnotationSink(Protocol):
    """Byte-addressable model of a program that accepts annotations."""

    def create_data(self, address: int, layout: RecordLayout, comment: str) -> None:
        ...

    def create_label(self, address: int, name: str) -> None:
        ...

    def create_fragment(self, name: str, address: int, length: int) -> None:
        ...


@dataclass(frozen=True)
class PlaceRecord:
    """Lay a typed record over the bytes at address."""

    address: int
    layout: RecordLayout
    comment: str = ""

    def apply(self, sink: AnnotationSink) -> None:
        sink.create_data(self.address, self.layout, self.comment)

    def __repr__(self) -> str:
        return f"PlaceRecord({self.address:#x}, {self.layout.name})"


@dataclass(frozen=True)
class CreateLabel:
    """Name an address."""

    address: int
    name: str

    def apply(self, sink: AnnotationSink) -> None:
        sink.create_label(self.address, self.name)

    def __repr__(self) -> str:
        return f"CreateLabel({self.address:#x}, {self.name!r})"


@dataclass(frozen=True)
class CreateFragment:
    """Group a contiguous byte range under a name."""

    name: str
    address: int
    length: int

    def apply(self, sink: AnnotationSink) -> None:
        sink.create_fragment(self.name, self.address, self.length)

    def __repr__(self) -> str:
        return f"CreateFragment({self.name!r}, {self.address:#x}, {self.length:#x})"


Action = PlaceRecord | CreateLabel | CreateFragment


class RecordingSink:
    """Sink that only remembers the actions applied to it, in order."""

    def __init__(self) -> None:
        self.actions: list[Action] = []

    def create_data(self, address: int, layout: RecordLayout, comment: str) -> None:
        self.actions.append(PlaceRecord(address, layout, comment))

    def create_label(self, address: int, name: str) -> None:
        self.actions.append(CreateLabel(address, name))

    def create_fragment(self, name: str, address: int, length: int) -> None:
        self.actions.append(CreateFragment(name, address, length))

    @property
    def records(self) -> list[PlaceRecord]:
        return [a for a in self.actions if isinstance(a, PlaceRecord)]

    @property
    def labels(self) -> list[CreateLabel]:
        return [a for a in self.actions if isinstance(a, CreateLabel)]

    @property
    def fragments(self) -> list[CreateFragment]:
        return [a for a in self.actions if isinstance(a, CreateFragment)]

    def __len__(self) -> int:
        return len(self.actions)

    def __iter__(self):
        return iter(self.actions)
