from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping

from .types import ModelFamily, NAI3Parameters, NAI4Parameters, Parameters

NAI3_NEGATIVE_PROMPT = (
    "nsfw, lowres, {bad}, error, fewer, extra, missing, worst quality, jpeg artifacts, "
    "bad quality, watermark, unfinished, displeasing, chromatic aberration, signature, "
    "extra digits, artistic error, username, scan, [abstract]"
)

NAI4_NEGATIVE_PROMPT = (
    "blurry, lowres, error, film grain, scan artifacts, worst quality, bad quality, "
    "jpeg artifacts, very displeasing, chromatic aberration, multiple views, logo, "
    "too many watermarks"
)

# Lists are stored as tuples so the tables themselves cannot be mutated.
BASE_DEFAULTS: Mapping[str, Any] = MappingProxyType({
    "params_version": 3,
    "width": 832,
    "height": 1216,
    "sampler": "k_euler_ancestral",
    "steps": 23,
    "n_samples": 1,
    "ucPreset": 0,
    "qualityToggle": True,
    "dynamic_thresholding": False,
    "controlnet_strength": 1,
    "legacy": False,
    "add_original_image": True,
    "cfg_rescale": 0,
    "noise_schedule": "karras",
    "legacy_v3_extend": False,
    "skip_cfg_above_sigma": None,
    "characterPrompts": (),
    "reference_image_multiple": (),
    "reference_information_extracted_multiple": (),
    "reference_strength_multiple": (),
    "deliberate_euler_ancestral_bug": False,
    "prefer_brownian": True,
})

NAI3_DEFAULTS: Mapping[str, Any] = MappingProxyType({
    **BASE_DEFAULTS,
    "scale": 5,
    "sm": False,
    "sm_dyn": False,
    "negative_prompt": NAI3_NEGATIVE_PROMPT,
})

NAI4_DEFAULTS: Mapping[str, Any] = MappingProxyType({
    **BASE_DEFAULTS,
    "scale": 6,
    "negative_prompt": NAI4_NEGATIVE_PROMPT,
    "use_coords": False,
})


def default_table(family: ModelFamily) -> Mapping[str, Any]:
    if ModelFamily.from_model(family).is_v4:
        return NAI4_DEFAULTS
    return NAI3_DEFAULTS


def get_defaults(family: ModelFamily) -> Parameters:
    """Return a fresh baseline parameter set for a model family.

    Every call builds a new instance from the read-only tables, so callers can
    never leak state into each other. Unknown families get the NAI3 baseline.
    """
    table = {k: list(v) if isinstance(v, tuple) else v for k, v in default_table(family).items()}
    if ModelFamily.from_model(family).is_v4:
        return NAI4Parameters.model_validate(table)
    return NAI3Parameters.model_validate(table)
