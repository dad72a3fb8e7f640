"""Integration tests for the CLI layer."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner
from PIL import Image

from site_toolbox.cli.main import cli


@pytest.fixture()
def banner(tmp_path: Path) -> Path:
    """Create a 1000x500 PNG."""
    path = tmp_path / "banner.png"
    Image.new("RGB", (1000, 500), color=(0, 128, 255)).save(str(path))
    return path


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    """An empty configuration directory so user config never leaks in."""
    path = tmp_path / "cfg"
    path.mkdir()
    return path


class TestFluidCommand:
    """Tests for the ``fluid`` CLI sub-command."""

    def test_help_shows_options(self) -> None:
        """``--help`` displays usage information without errors."""
        result = CliRunner().invoke(cli, ["fluid", "--help"])

        assert result.exit_code == 0
        assert "--max-width" in result.output
        assert "--breakpoints" in result.output

    def test_prints_src_set(self, banner: Path, config_dir: Path, tmp_path: Path) -> None:
        """Happy path: variants are rendered and their attributes printed."""
        result = CliRunner().invoke(
            cli,
            ["--config-dir", str(config_dir), "fluid", str(banner), "--max-width", "500", "-o", str(tmp_path / "out")],
        )

        assert result.exit_code == 0, result.output
        assert "125w" in result.output
        assert "1000w" in result.output
        assert "sizes: (max-width: 500px) 100vw, 500px" in result.output
        assert "aspectRatio: " in result.output
        assert list((tmp_path / "out" / "static").rglob("banner.png"))

    def test_custom_breakpoints(self, banner: Path, config_dir: Path, tmp_path: Path) -> None:
        """``--breakpoints`` replaces the default multipliers."""
        result = CliRunner().invoke(
            cli,
            [
                "--config-dir",
                str(config_dir),
                "fluid",
                str(banner),
                "--breakpoints",
                "200,400",
                "--no-base64",
                "-o",
                str(tmp_path / "out"),
            ],
        )

        assert result.exit_code == 0, result.output
        assert "200w" in result.output
        assert "400w" in result.output
        assert "125w" not in result.output
        assert "base64:" not in result.output

    def test_bad_breakpoints(self, banner: Path) -> None:
        """Non-numeric breakpoints are a usage error."""
        result = CliRunner().invoke(cli, ["fluid", str(banner), "--breakpoints", "small,large"])

        assert result.exit_code == 2
        assert "comma-separated integers" in result.output

    def test_corrupt_image(self, tmp_path: Path, config_dir: Path) -> None:
        """An unreadable image is reported and the command fails."""
        broken = tmp_path / "broken.png"
        broken.write_bytes(b"nope")

        result = CliRunner().invoke(
            cli, ["--config-dir", str(config_dir), "fluid", str(broken), "-o", str(tmp_path / "out")]
        )

        assert result.exit_code == 1
        assert "Could not process image" in result.output

    def test_blocked_output_directory(self, banner: Path, config_dir: Path, tmp_path: Path) -> None:
        """A render failure is reported as a clean error, not a traceback."""
        out = tmp_path / "out"
        out.mkdir()
        (out / "static").write_text("in the way")

        result = CliRunner().invoke(
            cli, ["--config-dir", str(config_dir), "fluid", str(banner), "--no-base64", "-o", str(out)]
        )

        assert result.exit_code == 1
        assert "Cannot create output directory" in result.output
        assert not isinstance(result.exception, OSError)

    def test_missing_image(self, tmp_path: Path) -> None:
        """A missing file is rejected by argument parsing."""
        result = CliRunner().invoke(cli, ["fluid", str(tmp_path / "nope.png")])
        assert result.exit_code != 0

    def test_output_dir_from_config(self, banner: Path, config_dir: Path, tmp_path: Path) -> None:
        """``output_dir`` in the tool config decides where files go."""
        tools_dir = config_dir / "tools"
        tools_dir.mkdir()
        site = tmp_path / "site"
        (tools_dir / "responsive_images.toml").write_text(f'output_dir = "{site.as_posix()}"\n')

        result = CliRunner().invoke(cli, ["--config-dir", str(config_dir), "fluid", str(banner)])

        assert result.exit_code == 0, result.output
        assert list((site / "static").rglob("banner.png"))


class TestFixedCommand:
    """Tests for the ``fixed`` CLI sub-command."""

    def test_prints_densities(self, banner: Path, config_dir: Path, tmp_path: Path) -> None:
        """Fixed mode prints the 1x/1.5x/2x set."""
        result = CliRunner().invoke(
            cli,
            ["--config-dir", str(config_dir), "fixed", str(banner), "-W", "300", "-f", "webp", "-o", str(tmp_path)],
        )

        assert result.exit_code == 0, result.output
        assert "banner.webp 1x" in result.output
        assert "banner.webp 2x" in result.output
        assert "width: 300" in result.output

    def test_oversized_request_warns(self, banner: Path, config_dir: Path, tmp_path: Path) -> None:
        """Asking for more than the source has prints a warning."""
        result = CliRunner().invoke(
            cli, ["--config-dir", str(config_dir), "fixed", str(banner), "-W", "2000", "-o", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        assert "Warning:" in result.output
        assert "width: 1000" in result.output

    def test_invalid_width(self, banner: Path, config_dir: Path, tmp_path: Path) -> None:
        """A zero width is reported as an error."""
        result = CliRunner().invoke(
            cli, ["--config-dir", str(config_dir), "fixed", str(banner), "-W", "0", "-o", str(tmp_path)]
        )

        assert result.exit_code == 1
        assert "has to be a positive int" in result.output


class TestDirectoryCommand:
    """Tests for the ``directory`` CLI sub-command."""

    def test_create_and_read(self, tmp_path: Path, config_dir: Path) -> None:
        """Create reports the new directory; read finds it."""
        runner = CliRunner()
        base = ["--config-dir", str(config_dir), "directory"]

        created = runner.invoke(cli, [*base, "create", "blog", "--root", str(tmp_path)])
        found = runner.invoke(cli, [*base, "read", "blog", "--root", str(tmp_path)])

        assert created.exit_code == 0
        assert 'Created directory "blog"' in created.output
        assert 'Created directory "blog"' in found.output
        assert (tmp_path / "blog").is_dir()

    def test_read_missing(self, tmp_path: Path, config_dir: Path) -> None:
        """Reading a missing directory is not an error."""
        result = CliRunner().invoke(
            cli, ["--config-dir", str(config_dir), "directory", "read", "ghost", "--root", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert "does not exist" in result.output

    def test_plan(self, tmp_path: Path, config_dir: Path) -> None:
        """Plan prints the description."""
        result = CliRunner().invoke(
            cli, ["--config-dir", str(config_dir), "directory", "plan", "src/data", "--root", str(tmp_path)]
        )

        assert result.exit_code == 0
        assert 'Create directory "src/data"' in result.output

    def test_destroy_non_empty_fails(self, tmp_path: Path, config_dir: Path) -> None:
        """Filesystem errors become a non-zero exit."""
        (tmp_path / "full").mkdir()
        (tmp_path / "full" / "file.txt").write_text("x")

        result = CliRunner().invoke(
            cli, ["--config-dir", str(config_dir), "directory", "destroy", "full", "--root", str(tmp_path)]
        )

        assert result.exit_code == 1
        assert (tmp_path / "full").is_dir()


class TestTopLevelCli:
    """Tests for the root CLI group."""

    def test_version_flag(self) -> None:
        """``--version`` prints the package version."""
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_help_flag_shows_usage(self) -> None:
        """``--help`` on the root group shows usage text."""
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Site Toolbox" in result.output
        assert "fluid" in result.output
        assert "directory" in result.output

    def test_invalid_config_fails(self, tmp_path: Path, config_dir: Path) -> None:
        """A malformed config file stops the command."""
        (config_dir / "config.toml").write_text("= broken\n")

        result = CliRunner().invoke(
            cli, ["--config-dir", str(config_dir), "directory", "plan", "x", "--root", str(tmp_path)]
        )

        assert result.exit_code == 1
        assert "not valid TOML" in result.output
