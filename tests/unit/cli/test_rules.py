"""Unit tests for the rules command."""

from pathlib import Path

from photobackup.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


class TestRulesCommand:
    """Tests for photo-backup rules."""

    def test_prints_filter_lines(self, travel_sources: tuple[Path, Path]) -> None:
        """Rules for A are built from B's paths."""
        a, b = travel_sources

        result = runner.invoke(app, ["rules", str(a), "-s", str(a), "-s", str(b)])

        assert result.exit_code == 0, result.output
        assert "P /Events\nP /Events/4.jpg\nP /Travel\nP /Travel/3.jpg\n" in result.output
        assert "P /Travel/1.jpg" not in result.output

    def test_single_source_has_no_rules(self, make_tree) -> None:
        """A lone source is not protected against anything."""
        a = make_tree("a", {"x.jpg": "x"})

        result = runner.invoke(app, ["rules", str(a), "-s", str(a)])

        assert result.exit_code == 0, result.output
        assert "P /" not in result.output

    def test_sources_from_config(self, travel_sources: tuple[Path, Path], tmp_path: Path) -> None:
        """Without --source the configured sources are used."""
        a, b = travel_sources
        config = tmp_path / "config.toml"
        config.write_text(f'sources = ["{a}", "{b}"]\n')

        result = runner.invoke(app, ["rules", str(b), "--config", str(config)])

        assert result.exit_code == 0, result.output
        assert "P /Travel/1.jpg" in result.output
        assert "P /Events" not in result.output

    def test_no_sources(self, tmp_path: Path) -> None:
        """Without any source list the command fails."""
        result = runner.invoke(app, ["rules", str(tmp_path)])

        assert result.exit_code == 1
        assert "sources" in result.output

    def test_unreadable_other_source(self, make_tree, tmp_path: Path) -> None:
        """A missing other source is reported as an error."""
        a = make_tree("a", {"x.jpg": "x"})

        result = runner.invoke(app, ["rules", str(a), "-s", str(a), "-s", str(tmp_path / "gone")])

        assert result.exit_code == 1
        assert "Cannot enumerate" in result.output
