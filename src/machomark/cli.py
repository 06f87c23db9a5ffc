"""Command-line interface for machomark."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel

console = Console()


def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load(binary: str) -> "Project":
    """Load a binary, exiting with an error message on failure."""
    from machomark import Project

    try:
        return Project.load(binary)
    except ValueError as e:
        console.print(f"[red]Failed to load binary: {e}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity")
def main(verbose: int) -> None:
    """machomark - Mach-O segment command decoder and markup tool."""
    _configure_logging(verbose)


@main.command()
@click.argument("binary", type=click.Path(exists=True))
def info(binary: str) -> None:
    """Display header and segment information."""
    with _load(binary) as proj:
        b = proj.binary

        console.print(Panel.fit(f"[bold]{Path(binary).name}[/bold]", title="Binary Info"))

        table = Table(show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value")

        table.add_row("Path", str(b.path))
        table.add_row("File Type", b.header.file_type_name)
        table.add_row("Width", "64-bit" if b.is_64bit else "32-bit")
        table.add_row("Byte Order", "little" if b.header.little_endian else "big")
        table.add_row("Load Commands", str(len(b.load_commands)))
        table.add_row("Segments", str(len(b.segments)))

        console.print(table)

        # Show segments
        console.print("\n[bold]Segments:[/bold]")
        seg_table = Table()
        seg_table.add_column("Name")
        seg_table.add_column("Address", style="green")
        seg_table.add_column("VM Size")
        seg_table.add_column("File Offset")
        seg_table.add_column("File Size")
        seg_table.add_column("Prot")
        seg_table.add_column("Sections")

        for seg in b.segments:
            name = seg.name
            if seg.is_protected:
                name += " [yellow](protected)[/yellow]"
            seg_table.add_row(
                name,
                f"{seg.virtual_address:#x}",
                f"{seg.vmsize:#x}",
                f"{seg.fileoff:#x}",
                f"{seg.filesize:#x}",
                seg.protection_string,
                str(len(seg.sections)),
            )

        console.print(seg_table)

        for error in b.decode_errors:
            console.print(f"[red]Decode error: {error}[/red]")


@main.command()
@click.argument("binary", type=click.Path(exists=True))
@click.argument("segment", required=False)
def sections(binary: str, segment: str | None) -> None:
    """List sections, optionally of a single segment."""
    with _load(binary) as proj:
        segments = proj.segments
        if segment:
            seg = proj.get_segment(segment)
            if not seg:
                console.print(f"[red]Segment not found: {segment}[/red]")
                sys.exit(1)
            segments = [seg]

        table = Table(title="Sections")
        table.add_column("Segment", style="cyan")
        table.add_column("Section")
        table.add_column("Address", style="green")
        table.add_column("Size")
        table.add_column("Offset")
        table.add_column("Type")
        table.add_column("Relocs")

        for seg in segments:
            for sect in seg.sections:
                table.add_row(
                    sect.segment_name,
                    sect.name,
                    f"{sect.addr:#x}",
                    f"{sect.size:#x}",
                    f"{sect.offset:#x}",
                    sect.type_name,
                    str(sect.nreloc),
                )

        console.print(table)


@main.command()
@click.argument("binary", type=click.Path(exists=True))
@click.argument("address")
def lookup(binary: str, address: str) -> None:
    """Find the segment and section containing an address."""
    try:
        addr = int(address, 0)
    except ValueError:
        console.print(f"[red]Invalid address: {address}[/red]")
        sys.exit(1)

    with _load(binary) as proj:
        seg = proj.binary.segment_at_address(addr)
        if not seg:
            console.print(f"[dim]No segment contains {addr:#x}[/dim]")
            return

        sect = seg.section_containing(addr)
        if sect:
            offset = addr - sect.addr
            console.print(f"[bold]{seg.name},{sect.name}[/bold]+{offset:#x}")
        else:
            console.print(f"[bold]{seg.name}[/bold] (no section)")


@main.command()
@click.option(
    "--width",
    type=click.Choice(["32", "64"]),
    default="64",
    help="Record width to describe",
)
def layout(width: str) -> None:
    """Print the segment, section and relocation record layouts."""
    from machomark.loader import relocation_layout, section_layout, segment_command_layout

    is_64bit = width == "64"
    for rec in (
        segment_command_layout(is_64bit),
        section_layout(is_64bit),
        relocation_layout(),
    ):
        table = Table(title=f"{rec.name} ({rec.size} bytes)")
        table.add_column("Offset", style="green")
        table.add_column("Field", style="cyan")
        table.add_column("Type")
        table.add_column("Size")

        for offset, name, type_name, size in rec.describe():
            table.add_row(f"{offset:#x}", name, type_name, str(size))

        console.print(table)


@main.command()
@click.argument("binary", type=click.Path(exists=True))
@click.option("--db", "db_path", type=click.Path(), default=None, help="Project database file")
@click.option("--base", default="0", help="Image base address")
def markup(binary: str, db_path: str | None, base: str) -> None:
    """Mark up section records, labels and fragments."""
    from machomark import Project

    try:
        image_base = int(base, 0)
    except ValueError:
        console.print(f"[red]Invalid base address: {base}[/red]")
        sys.exit(1)

    try:
        proj = Project.load(binary, db_path=db_path)
    except ValueError as e:
        console.print(f"[red]Failed to load binary: {e}[/red]")
        sys.exit(1)

    with proj:
        try:
            log = proj.markup(image_base)
        except ValueError as e:
            console.print(f"[red]Invalid base address: {e}[/red]")
            sys.exit(1)

        labels = Table(title="Labels")
        labels.add_column("Address", style="green")
        labels.add_column("Name", style="cyan")
        for label in proj.db.get_all_labels():
            labels.add_row(f"{label.address:#x}", label.name)
        console.print(labels)

        fragments = Table(title="Fragments")
        fragments.add_column("Name", style="cyan")
        fragments.add_column("Start", style="green")
        fragments.add_column("Length")
        for frag in proj.db.get_fragments():
            fragments.add_row(frag.name, f"{frag.address:#x}", f"{frag.length:#x}")
        console.print(fragments)

        console.print(f"\nPlaced {len(proj.db.get_all_data())} records")

        for message in log:
            console.print(f"[red]{message}[/red]")
        if log.has_messages():
            sys.exit(1)
