from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from novelai_cli.cli import app
from novelai_cli.gen.generate import Generator
from novelai_cli.gen.types import GenerationResult
from novelai_cli.preferences import PreferenceStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("NOVELAI_TOKEN", raising=False)


class TestDefaultsCommand:
    def test_prints_nai4_defaults(self) -> None:
        result = runner.invoke(app, ["defaults", "nai-diffusion-4-full"])
        assert result.exit_code == 0
        assert '"use_coords": false' in result.stdout
        assert '"sm"' not in result.stdout

    def test_prints_nai3_defaults(self) -> None:
        result = runner.invoke(app, ["defaults"])
        assert result.exit_code == 0
        assert '"sm_dyn": false' in result.stdout


class TestGenerateCommand:
    def test_dry_run_needs_no_token(self) -> None:
        result = runner.invoke(
            app, ["generate", "a cat", "--model", "nai-diffusion-4-full", "--seed", "7", "--dry-run"]
        )
        assert result.exit_code == 0
        assert '"action": "generate"' in result.stdout
        assert '"seed": 7' in result.stdout
        assert '"v4_prompt"' in result.stdout

    def test_params_file(self, tmp_path: Path) -> None:
        params = tmp_path / "params.yaml"
        params.write_text(
            "model: nai-diffusion-2\nparameters:\n  steps: 40\n  seed: 3\n", encoding="utf-8"
        )
        result = runner.invoke(app, ["generate", "x", "--params", str(params), "--dry-run"])
        assert result.exit_code == 0
        assert '"model": "nai-diffusion-2"' in result.stdout
        assert '"steps": 40' in result.stdout

    def test_dry_run_keeps_unlisted_model_id(self) -> None:
        result = runner.invoke(app, ["generate", "x", "--model", "nai-diffusion-3-furry", "--dry-run"])
        assert result.exit_code == 0
        assert '"model": "nai-diffusion-3-furry"' in result.stdout
        assert '"sm": false' in result.stdout

    def test_malformed_params_file(self, tmp_path: Path) -> None:
        params = tmp_path / "params.yaml"
        params.write_text("parameters: [unclosed\n", encoding="utf-8")

        result = runner.invoke(app, ["generate", "x", "--params", str(params), "--dry-run"])

        assert result.exit_code == 2
        assert isinstance(result.exception, SystemExit)

    def test_missing_token_exits_with_config_error(self) -> None:
        result = runner.invoke(app, ["generate", "a cat"])
        assert result.exit_code == 2

    def test_successful_generation(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("NOVELAI_TOKEN", "tok")
        ok = GenerationResult.ok(str(tmp_path / "novelai-x.png"))
        with patch.object(Generator, "generate_image", return_value=ok) as mock_gen:
            result = runner.invoke(app, ["generate", "a cat", "--out", str(tmp_path), "--repeat", "2", "--interval", "0"])

        assert result.exit_code == 0
        assert mock_gen.call_count == 2
        args = mock_gen.call_args.args
        assert args[0] == "a cat"
        assert args[4] == tmp_path

    def test_failed_generation_exits_nonzero(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("NOVELAI_TOKEN", "tok")
        failed = GenerationResult.failed("API request failed with status 401: invalid token")
        with patch.object(Generator, "generate_image", return_value=failed):
            result = runner.invoke(app, ["generate", "a cat"])

        assert result.exit_code == 1
        assert "invalid token" in result.stdout


class TestSaveDirCommand:
    def test_set_show_clear(self, tmp_path: Path) -> None:
        target = tmp_path / "images"

        assert runner.invoke(app, ["save-dir", str(target)]).exit_code == 0
        assert PreferenceStore().get_save_path() == str(target.resolve())

        shown = runner.invoke(app, ["save-dir"])
        assert "images" in shown.stdout

        assert runner.invoke(app, ["save-dir", "--clear"]).exit_code == 0
        assert PreferenceStore().get_save_path() is None
