"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from machomark import cli
from machomark.cli import main


@pytest.fixture
def runner(monkeypatch):
    # Keep table cells from wrapping in captured output
    monkeypatch.setattr(cli.console, "width", 200)
    return CliRunner()


class TestCli:
    """Tests for CLI commands against a synthesized image."""

    def test_info(self, runner, sample_path):
        result = runner.invoke(main, ["info", str(sample_path)])

        assert result.exit_code == 0
        assert "MH_EXECUTE" in result.output
        assert "__TEXT" in result.output
        assert "__DATA" in result.output
        assert "r-x" in result.output

    def test_sections(self, runner, sample_path):
        result = runner.invoke(main, ["sections", str(sample_path)])

        assert result.exit_code == 0
        for name in ("__text", "__cstring", "__data", "__bss"):
            assert name in result.output
        assert "S_ZEROFILL" in result.output

    def test_sections_of_segment(self, runner, sample_path):
        result = runner.invoke(main, ["sections", str(sample_path), "__DATA"])

        assert result.exit_code == 0
        assert "__bss" in result.output
        assert "__cstring" not in result.output

    def test_sections_unknown_segment(self, runner, sample_path):
        result = runner.invoke(main, ["sections", str(sample_path), "__NOPE"])

        assert result.exit_code == 1
        assert "Segment not found" in result.output

    def test_lookup(self, runner, sample_path):
        result = runner.invoke(main, ["lookup", str(sample_path), "0x100000410"])

        assert result.exit_code == 0
        assert "__TEXT,__text" in result.output

    def test_lookup_invalid_address(self, runner, sample_path):
        result = runner.invoke(main, ["lookup", str(sample_path), "nowhere"])

        assert result.exit_code == 1
        assert "Invalid address" in result.output

    def test_layout(self, runner):
        result = runner.invoke(main, ["layout"])

        assert result.exit_code == 0
        assert "segment_command_64" in result.output
        assert "section_64" in result.output
        assert "qword" in result.output

    def test_layout_32bit(self, runner):
        result = runner.invoke(main, ["layout", "--width", "32"])

        assert result.exit_code == 0
        assert "segment_command (56 bytes)" in result.output
        assert "qword" not in result.output

    def test_markup(self, runner, sample_path, tmp_path):
        db_path = tmp_path / "out.db"
        result = runner.invoke(main, ["markup", str(sample_path), "--db", str(db_path)])

        assert result.exit_code == 0
        assert "__cstring" in result.output
        assert "__text_Relocations" in result.output
        assert "Placed 6 records" in result.output
        assert db_path.exists()

    def test_markup_kernel_base(self, runner, sample_path):
        result = runner.invoke(
            main, ["markup", str(sample_path), "--base", "0xfffffe0007004000"]
        )

        assert result.exit_code == 0
        assert "0xfffffe0007004400" in result.output
        assert "Placed 6 records" in result.output

    def test_markup_negative_base(self, runner, sample_path):
        result = runner.invoke(main, ["markup", str(sample_path), "--base", "-1"])

        assert result.exit_code == 1
        assert "Invalid base address" in result.output

    def test_not_macho(self, runner, tmp_path):
        path = tmp_path / "junk"
        path.write_bytes(b"\x00" * 64)

        result = runner.invoke(main, ["info", str(path)])

        assert result.exit_code == 1
        assert "Failed to load binary" in result.output
