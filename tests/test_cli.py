"""Tests for the command-line interface."""

import json

import pytest
from click.testing import CliRunner

from ardisplay.cli import main
from ardisplay.core.config import ArDisplayConfig

from conftest import write_box_model


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path, service_config):
    path = tmp_path / "ardisplay.json"
    ArDisplayConfig(service=service_config).to_file(path)
    return str(path)


class TestResizeCommand:
    """Test `ardisplay resize`."""

    def test_explicit_size(self, runner, models_dir):
        write_box_model(models_dir, "cube.glb")

        result = runner.invoke(
            main, ["resize", "cube", "--size", "2", "2", "2", "--models-dir", str(models_dir)]
        )

        assert result.exit_code == 0, result.output
        variants = list((models_dir / "resized").glob("cube_*.glb"))
        assert len(variants) == 1

    def test_uniform_scale_then_hit(self, runner, models_dir):
        write_box_model(models_dir, "cube.glb")
        args = ["resize", "cube", "--scale", "2", "--models-dir", str(models_dir)]

        runner.invoke(main, args)
        result = runner.invoke(main, args)

        assert result.exit_code == 0, result.output
        assert "hit" in result.output

    def test_needs_exactly_one_option(self, runner, models_dir):
        both = runner.invoke(main, ["resize", "cube", "--scale", "2", "--size", "1", "1", "1"])
        neither = runner.invoke(main, ["resize", "cube"])
        assert both.exit_code == 2
        assert neither.exit_code == 2

    def test_missing_model(self, runner, models_dir):
        result = runner.invoke(
            main, ["resize", "ghost", "--scale", "2", "--models-dir", str(models_dir)]
        )
        assert result.exit_code == 1
        assert "NotFoundError" in result.output


class TestInfoCommand:
    """Test `ardisplay info`."""

    def test_shows_size(self, runner, models_dir):
        path = write_box_model(models_dir, "cube.glb", (1.0, 2.0, 3.0))
        result = runner.invoke(main, ["info", str(path)])
        assert result.exit_code == 0, result.output
        assert "1 x 2 x 3" in result.output

    def test_bad_file(self, runner, tmp_path):
        path = tmp_path / "bad.glb"
        path.write_bytes(b"junk")
        result = runner.invoke(main, ["info", str(path)])
        assert result.exit_code == 1


class TestCheckCommand:
    """Test `ardisplay check`."""

    def test_found(self, runner, config_file, models_dir):
        write_box_model(models_dir, "cube.glb")
        result = runner.invoke(main, ["--config", config_file, "check", "cube"])
        assert result.exit_code == 0
        assert "/models/cube.glb" in result.output

    def test_not_found(self, runner, config_file):
        result = runner.invoke(main, ["--config", config_file, "check", "ghost"])
        assert result.exit_code == 1

    def test_unsafe(self, runner, config_file):
        result = runner.invoke(main, ["--config", config_file, "check", "../etc"])
        assert result.exit_code == 1
        assert "ValidationError" in result.output


class TestCacheCommands:
    """Test `ardisplay cache`."""

    def _resize(self, runner, config_file, scale):
        result = runner.invoke(main, ["--config", config_file, "resize", "cube", "--scale", scale])
        assert result.exit_code == 0, result.output

    def test_list_empty(self, runner, config_file):
        result = runner.invoke(main, ["--config", config_file, "cache", "list"])
        assert result.exit_code == 0
        assert "No cached variants" in result.output

    def test_list_and_clean(self, runner, config_file, models_dir):
        write_box_model(models_dir, "cube.glb")
        self._resize(runner, config_file, "2")
        self._resize(runner, config_file, "3")

        listed = runner.invoke(main, ["--config", config_file, "cache", "list", "--model", "cube"])
        assert listed.exit_code == 0
        assert "Resized Variants" in listed.output

        cleaned = runner.invoke(main, ["--config", config_file, "cache", "clean", "--force"])
        assert cleaned.exit_code == 0
        assert "Deleted 2" in cleaned.output
        assert list((models_dir / "resized").iterdir()) == []

    def test_clean_cancelled(self, runner, config_file, models_dir):
        write_box_model(models_dir, "cube.glb")
        self._resize(runner, config_file, "2")

        result = runner.invoke(main, ["--config", config_file, "cache", "clean"], input="n\n")

        assert "Cancelled" in result.output
        assert len(list((models_dir / "resized").iterdir())) == 1


class TestInitConfig:
    """Test `ardisplay init-config`."""

    def test_writes_defaults(self, runner, tmp_path):
        output = tmp_path / "cfg.json"
        result = runner.invoke(main, ["init-config", "-o", str(output)])

        assert result.exit_code == 0
        data = json.loads(output.read_text())
        assert data["service"]["resized_subdir"] == "resized"
        assert data["server"]["port"] == 3000
        assert ArDisplayConfig.from_file(output) == ArDisplayConfig()
