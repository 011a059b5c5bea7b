from __future__ import annotations

from .adapter import adapt, merge_parameters, normalize_for_family
from .archive import extract_image
from .config import AppConfig, ConfigError, GenerationConfig, load_config
from .defaults import get_defaults
from .errors import (
    ApiError,
    ArchiveError,
    GenerationCancelled,
    NoImageFoundError,
    NoSavePathError,
    NovelAIError,
    ParameterError,
    RequestTimeoutError,
    TransportError,
    UnknownError,
    WriteError,
)
from .generate import Generator, generate_image
from .repeat import AutoRepeat, CancelToken
from .request import build_request
from .storage import default_save_dir, save_image
from .transport import Transport
from .types import (
    CharacterPrompt,
    GenerationRequest,
    GenerationResult,
    ModelFamily,
    NAI3Parameters,
    NAI4Parameters,
)

__all__ = [
    "adapt",
    "merge_parameters",
    "normalize_for_family",
    "extract_image",
    "AppConfig",
    "ConfigError",
    "GenerationConfig",
    "load_config",
    "get_defaults",
    "ApiError",
    "ArchiveError",
    "GenerationCancelled",
    "NoImageFoundError",
    "NoSavePathError",
    "NovelAIError",
    "ParameterError",
    "RequestTimeoutError",
    "TransportError",
    "UnknownError",
    "WriteError",
    "Generator",
    "generate_image",
    "AutoRepeat",
    "CancelToken",
    "build_request",
    "default_save_dir",
    "save_image",
    "Transport",
    "CharacterPrompt",
    "GenerationRequest",
    "GenerationResult",
    "ModelFamily",
    "NAI3Parameters",
    "NAI4Parameters",
]
