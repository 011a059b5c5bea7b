from __future__ import annotations

import logging
import random
from typing import Any, Iterable, Mapping, Optional, Union

from pydantic import BaseModel, ValidationError

from .defaults import get_defaults
from .errors import ParameterError
from .types import (
    SEED_MAX,
    Center,
    CharacterPrompt,
    CharCaption,
    ModelFamily,
    NAI3Parameters,
    NAI4Parameters,
    Parameters,
    V4Caption,
    V4NegativePrompt,
    V4Prompt,
)

logger = logging.getLogger(__name__)

UserParameters = Union[Mapping[str, Any], BaseModel, None]
CharacterInput = Union[CharacterPrompt, Mapping[str, Any], str]


def _wire_aliases() -> dict[str, str]:
    aliases: dict[str, str] = {}
    for model in (NAI3Parameters, NAI4Parameters):
        for name, info in model.model_fields.items():
            if info.alias:
                aliases[name] = info.alias
    return aliases


WIRE_ALIASES = _wire_aliases()

# Wire keys owned by exactly one variant of the parameter union.
NAI3_ONLY_FIELDS = frozenset(NAI3Parameters.model_fields) - frozenset(NAI4Parameters.model_fields)
NAI4_ONLY_FIELDS = frozenset(NAI4Parameters.model_fields) - frozenset(NAI3Parameters.model_fields)


def draw_seed(rng: Optional[random.Random] = None) -> int:
    return (rng or random).randint(0, SEED_MAX)


def merge_parameters(family: ModelFamily, user_parameters: UserParameters = None) -> dict[str, Any]:
    """Phase one: lay the caller's values over the family baseline.

    Returns a wire-keyed dict. Caller keys may use either the attribute or the
    wire spelling. A ``None`` value means "not set" and keeps the default,
    except for ``seed`` where ``None`` asks for a random seed later on.
    """
    merged = get_defaults(family).to_wire()
    if user_parameters is None:
        return merged

    if isinstance(user_parameters, BaseModel):
        user = user_parameters.model_dump(mode="json", by_alias=True, exclude_unset=True)
    else:
        user = dict(user_parameters)

    for key, value in user.items():
        key = WIRE_ALIASES.get(key, key)
        if value is None and key != "seed" and key in merged:
            continue
        merged[key] = value
    return merged


def coerce_character_prompts(character_prompts: Optional[Iterable[CharacterInput]]) -> list[CharacterPrompt]:
    if character_prompts is None or isinstance(character_prompts, (str, bytes, Mapping)):
        return []
    out: list[CharacterPrompt] = []
    for item in character_prompts:
        if isinstance(item, CharacterPrompt):
            out.append(item)
        elif isinstance(item, str):
            out.append(CharacterPrompt(prompt=item))
        else:
            out.append(CharacterPrompt.model_validate(item))
    return out


def build_v4_prompt(prompt: str, characters: list[CharacterPrompt]) -> V4Prompt:
    return V4Prompt(
        caption=V4Caption(
            base_caption=prompt,
            char_captions=[
                CharCaption(char_caption=c.prompt, centers=[c.anchor]) for c in characters
            ],
        ),
        use_coords=False,
        use_order=True,
    )


def build_v4_negative_prompt(negative_prompt: str, characters: list[CharacterPrompt]) -> V4NegativePrompt:
    return V4NegativePrompt(
        caption=V4Caption(
            base_caption=negative_prompt,
            char_captions=[CharCaption(char_caption="", centers=[Center()]) for _ in characters],
        )
    )


def normalize_for_family(
    family: ModelFamily,
    merged: Mapping[str, Any],
    prompt: str = "",
    character_prompts: Optional[Iterable[CharacterInput]] = None,
    rng: Optional[random.Random] = None,
) -> Parameters:
    """Phase two: shape merged parameters into the variant for ``family``.

    Runs after the merge so stale fields carried over from the caller are
    overridden. Fields that belong only to the other variant are dropped.

    Raises:
        ParameterError: If a caller-supplied value fails validation.
    """
    family = ModelFamily.from_model(family)
    params = dict(merged)

    if params.get("seed") is None:
        params["seed"] = draw_seed(rng)

    if family.is_v4:
        foreign = NAI3_ONLY_FIELDS
        characters = coerce_character_prompts(character_prompts)
        params["v4_prompt"] = build_v4_prompt(prompt or "", characters)
        params["v4_negative_prompt"] = build_v4_negative_prompt(
            params.get("negative_prompt") or "", characters
        )
        params["use_coords"] = False
        if not isinstance(params.get("characterPrompts"), list):
            params["characterPrompts"] = []
        model: type[Parameters] = NAI4Parameters
    else:
        foreign = NAI4_ONLY_FIELDS
        params["characterPrompts"] = []
        model = NAI3Parameters

    dropped = sorted(k for k in foreign if k in params)
    for key in dropped:
        del params[key]
    if dropped:
        logger.debug("Dropped fields not used by %s: %s", family.value, ", ".join(dropped))

    try:
        return model.model_validate(params)
    except ValidationError as e:
        raise ParameterError(f"Invalid parameters for {family.value}: {e}") from e


def adapt(
    family: ModelFamily,
    user_parameters: UserParameters = None,
    prompt: str = "",
    character_prompts: Optional[Iterable[CharacterInput]] = None,
    rng: Optional[random.Random] = None,
) -> Parameters:
    """Produce a complete, family-correct parameter set."""
    merged = merge_parameters(family, user_parameters)
    return normalize_for_family(family, merged, prompt, character_prompts, rng)
