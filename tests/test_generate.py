from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock, patch

import httpx
import pytest

from novelai_cli.gen.config import GenerationConfig
from novelai_cli.gen.errors import NoSavePathError
from novelai_cli.gen.generate import Generator, generate_image
from novelai_cli.gen.repeat import CancelToken
from novelai_cli.gen.transport import Transport
from novelai_cli.gen.types import GenerationResult
from novelai_cli.preferences import PreferenceStore

CONFIG = GenerationConfig(api_endpoint="https://api.example.test/gen", auth_token="tok")
FILENAME_RE = re.compile(r"^novelai-\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d+Z\.png$")


def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _zip_client(body: bytes, seen: list | None = None) -> httpx.Client:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(json.loads(request.content))
        return httpx.Response(200, content=body)

    return _client(handler)


def _generator(client: httpx.Client, **kwargs) -> Generator:
    return Generator(CONFIG, transport=Transport(CONFIG, client=client), **kwargs)


class TestGenerateImage:
    def test_end_to_end_success(self, tmp_path: Path, make_zip, png_bytes: bytes) -> None:
        out_dir = tmp_path / "out"
        seen: list = []
        generator = _generator(_zip_client(make_zip({"image.png": png_bytes}), seen))

        result = generator.generate_image("a cat", "nai-diffusion-3", {}, save_dir=out_dir)

        assert result.success is True
        assert result.error is None
        path = Path(result.image_path)
        assert path.parent == out_dir
        assert FILENAME_RE.match(path.name)
        assert path.read_bytes() == png_bytes

        sent = seen[0]
        assert sent["input"] == "a cat"
        assert sent["model"] == "nai-diffusion-3"
        assert "v4_prompt" not in sent["parameters"]
        assert sent["parameters"]["characterPrompts"] == []

    def test_nai4_request_carries_structured_prompt(self, tmp_path: Path, make_zip, png_bytes: bytes) -> None:
        seen: list = []
        generator = _generator(_zip_client(make_zip({"image.png": png_bytes}), seen))

        result = generator.generate_image(
            "a cat", "nai-diffusion-4-full", {"sm": True}, ["tabby"], save_dir=tmp_path
        )

        assert result.success
        params = seen[0]["parameters"]
        assert params["v4_prompt"]["caption"]["char_captions"][0]["char_caption"] == "tabby"
        assert "sm" not in params

    def test_unlisted_model_id_is_sent_unchanged(self, tmp_path: Path, make_zip, png_bytes: bytes) -> None:
        seen: list = []
        generator = _generator(_zip_client(make_zip({"image.png": png_bytes}), seen))

        result = generator.generate_image("a cat", "nai-diffusion-3-furry", {}, save_dir=tmp_path)

        assert result.success
        assert seen[0]["model"] == "nai-diffusion-3-furry"
        params = seen[0]["parameters"]
        assert params["sm"] is False
        assert params["scale"] == 5
        assert "v4_prompt" not in params

    def test_missing_model_uses_default(self, tmp_path: Path, make_zip, png_bytes: bytes) -> None:
        seen: list = []
        generator = _generator(_zip_client(make_zip({"image.png": png_bytes}), seen))

        generator.generate_image("a cat", None, save_dir=tmp_path)

        assert seen[0]["model"] == "nai-diffusion-3"

    def test_api_error_becomes_failed_result(self, tmp_path: Path) -> None:
        generator = _generator(_client(lambda r: httpx.Response(401, text="invalid token")))

        result = generator.generate_image("a cat", save_dir=tmp_path)

        assert result.success is False
        assert result.image_path is None
        assert "401" in result.error
        assert "invalid token" in result.error
        assert list(tmp_path.iterdir()) == []

    def test_bad_archive_writes_nothing(self, tmp_path: Path) -> None:
        generator = _generator(_zip_client(b"definitely not a zip"))

        result = generator.generate_image("a cat", save_dir=tmp_path)

        assert result.success is False
        assert "archive" in result.error.lower()
        assert list(tmp_path.iterdir()) == []

    def test_archive_without_image(self, tmp_path: Path, make_zip) -> None:
        generator = _generator(_zip_client(make_zip({}, dirs=("folder",))))

        result = generator.generate_image("a cat", save_dir=tmp_path)

        assert result.success is False
        assert "no image" in result.error.lower()

    def test_invalid_parameters_stop_before_transport(self, tmp_path: Path) -> None:
        handler = MagicMock(return_value=httpx.Response(200))
        generator = _generator(_client(handler))

        result = generator.generate_image("a cat", parameters={"steps": "many"}, save_dir=tmp_path)

        assert result.success is False
        assert "steps" in result.error
        handler.assert_not_called()

    def test_unexpected_exception_is_wrapped(self, tmp_path: Path) -> None:
        generator = _generator(_zip_client(b""))
        with patch("novelai_cli.gen.generate.extract_image", side_effect=RuntimeError("boom")):
            result = generator.generate_image("a cat", save_dir=tmp_path)

        assert result == GenerationResult.failed("Unknown error: boom")

    def test_no_save_path_is_reported(self, make_zip, png_bytes: bytes) -> None:
        def no_dir() -> Path:
            raise NoSavePathError("No save directory available")

        generator = _generator(
            _zip_client(make_zip({"image.png": png_bytes})), save_dir_resolver=no_dir
        )
        result = generator.generate_image("a cat")

        assert result == GenerationResult.failed("No save directory available")

    def test_cancelled_before_dispatch(self, tmp_path: Path) -> None:
        handler = MagicMock(return_value=httpx.Response(200))
        token = CancelToken()
        token.cancel()

        result = _generator(_client(handler)).generate_image("a cat", save_dir=tmp_path, cancel=token)

        assert result.success is False
        assert "cancel" in result.error.lower()
        handler.assert_not_called()

    def test_unset_seed_differs_between_calls(self, tmp_path: Path, make_zip, png_bytes: bytes) -> None:
        seen: list = []
        generator = _generator(_zip_client(make_zip({"image.png": png_bytes}), seen))

        generator.generate_image("a cat", parameters={"width": 512}, save_dir=tmp_path / "a")
        generator.generate_image("a cat", parameters={"width": 512}, save_dir=tmp_path / "b")

        seeds = [s["parameters"]["seed"] for s in seen]
        assert all(0 <= s <= 999_999_999 for s in seeds)
        assert seeds[0] != seeds[1]


class TestResolveSaveDir:
    def test_explicit_wins(self, tmp_path: Path) -> None:
        prefs = PreferenceStore(tmp_path / "prefs.yaml")
        prefs.set_save_path(tmp_path / "pref")
        generator = Generator(CONFIG, preferences=prefs, save_dir=tmp_path / "cfg")

        assert generator.resolve_save_dir(tmp_path / "arg") == tmp_path / "arg"

    def test_preference_before_config(self, tmp_path: Path) -> None:
        prefs = PreferenceStore(tmp_path / "prefs.yaml")
        prefs.set_save_path(tmp_path / "pref")
        generator = Generator(CONFIG, preferences=prefs, save_dir=tmp_path / "cfg")

        assert generator.resolve_save_dir() == tmp_path / "pref"

    def test_config_before_app_data(self, tmp_path: Path) -> None:
        generator = Generator(CONFIG, preferences=PreferenceStore(tmp_path / "prefs.yaml"), save_dir=tmp_path / "cfg")
        assert generator.resolve_save_dir() == tmp_path / "cfg"

    def test_falls_back_to_app_data(self, isolated_home: Path) -> None:
        generator = Generator(CONFIG)
        assert generator.resolve_save_dir() == isolated_home / "images"


def test_module_level_generate_image(tmp_path: Path, make_zip, png_bytes: bytes) -> None:
    result = generate_image(
        CONFIG,
        "a cat",
        save_dir=tmp_path,
        client=_zip_client(make_zip({"image.png": png_bytes})),
    )
    assert result.success
    assert Path(result.image_path).read_bytes() == png_bytes


def test_result_never_partially_populated() -> None:
    with pytest.raises(ValueError):
        GenerationResult(success=True)
    with pytest.raises(ValueError):
        GenerationResult(success=False, image_path="/tmp/x.png", error="nope")
