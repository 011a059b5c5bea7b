from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional, Union

import httpx

from .adapter import CharacterInput, UserParameters, adapt
from .archive import extract_image
from .config import GenerationConfig
from .errors import NovelAIError, UnknownError
from .repeat import AutoRepeat, CancelToken
from .request import build_request
from .storage import Writer, default_save_dir, save_image
from .transport import Transport
from .types import DEFAULT_MODEL, GenerationRequest, GenerationResult, ModelFamily, Parameters

if TYPE_CHECKING:
    from ..preferences import PreferenceStore

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    name: str
    success: bool
    duration_sec: float
    message: str = ""


@dataclass
class GenerationRun:
    """Bookkeeping for one pass through the stages."""

    stage_results: list[StageResult] = field(default_factory=list)
    error: Optional[NovelAIError] = None

    @property
    def stages_completed(self) -> list[str]:
        return [sr.name for sr in self.stage_results if sr.success]


def _run_stage(name: str, func: Callable[[], Any], run: GenerationRun) -> Any:
    start = time.monotonic()
    try:
        value = func()
    except NovelAIError as e:
        run.error = e
    except Exception as e:
        run.error = UnknownError(e)
        logger.debug("Unexpected failure in stage %s", name, exc_info=True)
    duration = time.monotonic() - start

    if run.error is not None:
        run.stage_results.append(StageResult(name, False, duration, str(run.error)))
        logger.warning("Stage %s failed after %.2fs: %s", name, duration, run.error)
        return None

    run.stage_results.append(StageResult(name, True, duration))
    logger.debug("Stage %s ok (%.2fs)", name, duration)
    return value


class Generator:
    """Sequences adapt, build, transport, decode and persist for one prompt.

    Every failure is turned into a failed ``GenerationResult``; nothing raises
    out of ``generate_image``.
    """

    def __init__(
        self,
        config: GenerationConfig,
        transport: Optional[Transport] = None,
        preferences: Optional["PreferenceStore"] = None,
        save_dir: Union[str, Path, None] = None,
        save_dir_resolver: Callable[[], Path] = default_save_dir,
        writer: Optional[Writer] = None,
        rng: Optional[random.Random] = None,
    ):
        self.config = config
        self.transport = transport or Transport(config)
        self.preferences = preferences
        self.save_dir = save_dir
        self._save_dir_resolver = save_dir_resolver
        self._writer = writer
        self._rng = rng

    def resolve_save_dir(self, explicit: Union[str, Path, None] = None) -> Path:
        """Pick the save directory: argument, stored preference, config, then app data."""
        if explicit:
            return Path(explicit)
        if self.preferences is not None:
            stored = self.preferences.get_save_path()
            if stored:
                return Path(stored)
        if self.save_dir:
            return Path(self.save_dir)
        return self._save_dir_resolver()

    def generate_image(
        self,
        prompt: Optional[str],
        model: Optional[str] = None,
        parameters: UserParameters = None,
        character_prompts: Optional[Iterable[CharacterInput]] = None,
        save_dir: Union[str, Path, None] = None,
        cancel: Optional[CancelToken] = None,
    ) -> GenerationResult:
        run = GenerationRun()
        family = ModelFamily.from_model(model or DEFAULT_MODEL)

        adapted: Optional[Parameters] = _run_stage(
            "adapt",
            lambda: adapt(family, parameters, prompt or "", character_prompts, self._rng),
            run,
        )
        if run.error is not None:
            return self._finish(run)

        request: Optional[GenerationRequest] = _run_stage(
            "build", lambda: build_request(prompt, model, adapted), run
        )
        if run.error is not None:
            return self._finish(run)

        body: Optional[bytes] = _run_stage("transport", lambda: self.transport.send(request, cancel), run)
        if run.error is not None:
            return self._finish(run)

        image: Optional[bytes] = _run_stage("decode", lambda: extract_image(body), run)
        if run.error is not None:
            return self._finish(run)

        path: Optional[str] = _run_stage(
            "persist",
            lambda: save_image(image, self.resolve_save_dir(save_dir), writer=self._writer),
            run,
        )
        return self._finish(run, path)

    def auto_repeat(
        self,
        prompt: Optional[str],
        model: Optional[str] = None,
        parameters: UserParameters = None,
        character_prompts: Optional[Iterable[CharacterInput]] = None,
        save_dir: Union[str, Path, None] = None,
        interval_sec: float = 0.0,
        max_runs: Optional[int] = None,
        stop_on_error: bool = False,
        token: Optional[CancelToken] = None,
    ) -> AutoRepeat:
        """Build a cancellable loop that repeats this generation.

        Parameters are re-adapted on every run, so an unset seed is drawn anew
        each time.
        """
        characters = list(character_prompts) if character_prompts is not None else None

        def run_once(cancel: CancelToken) -> GenerationResult:
            return self.generate_image(prompt, model, parameters, characters, save_dir, cancel)

        return AutoRepeat(
            run_once,
            interval_sec=interval_sec,
            max_runs=max_runs,
            stop_on_error=stop_on_error,
            token=token,
        )

    def _finish(self, run: GenerationRun, path: Optional[str] = None) -> GenerationResult:
        if run.error is not None:
            return GenerationResult.failed(str(run.error))
        logger.info("Generated %s via %s", path, " -> ".join(run.stages_completed))
        return GenerationResult.ok(path)


def generate_image(
    config: GenerationConfig,
    prompt: Optional[str],
    model: Optional[str] = None,
    parameters: UserParameters = None,
    character_prompts: Optional[Iterable[CharacterInput]] = None,
    save_dir: Union[str, Path, None] = None,
    client: Optional[httpx.Client] = None,
) -> GenerationResult:
    """One-shot convenience wrapper around ``Generator.generate_image``."""
    generator = Generator(config, transport=Transport(config, client=client))
    return generator.generate_image(prompt, model, parameters, character_prompts, save_dir)
