from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

SEED_MAX = 999_999_999


class ModelFamily(str, enum.Enum):
    """Backend model generations; the value is the wire model identifier."""

    NAI4 = "nai-diffusion-4-full"
    NAI3 = "nai-diffusion-3"
    NAI2 = "nai-diffusion-2"
    SAFE_DIFFUSION = "safe-diffusion"

    @classmethod
    def from_model(cls, model: Optional[str]) -> "ModelFamily":
        """Resolve a model identifier, falling back to NAI3 for anything unknown."""
        if isinstance(model, cls):
            return model
        try:
            return cls(model)
        except ValueError:
            return cls.NAI3

    @property
    def is_v4(self) -> bool:
        return self is ModelFamily.NAI4


DEFAULT_MODEL = ModelFamily.NAI3.value


class Center(BaseModel):
    model_config = ConfigDict(frozen=True)
    x: float = 0.0
    y: float = 0.0


class CharacterPrompt(BaseModel):
    model_config = ConfigDict(frozen=True)
    prompt: str
    uc: str = ""
    center: Optional[Center] = None

    @property
    def anchor(self) -> Center:
        return self.center if self.center is not None else Center()

    @field_serializer("center")
    def _serialize_center(self, center: Optional[Center]) -> dict[str, float]:
        return (center or Center()).model_dump()


class CharCaption(BaseModel):
    model_config = ConfigDict(frozen=True)
    char_caption: str = ""
    centers: list[Center] = Field(default_factory=lambda: [Center()])


class V4Caption(BaseModel):
    model_config = ConfigDict(frozen=True)
    base_caption: str = ""
    char_captions: list[CharCaption] = Field(default_factory=list)


class V4Prompt(BaseModel):
    model_config = ConfigDict(frozen=True)
    caption: V4Caption = Field(default_factory=V4Caption)
    use_coords: bool = False
    use_order: bool = True


class V4NegativePrompt(BaseModel):
    model_config = ConfigDict(frozen=True)
    caption: V4Caption = Field(default_factory=V4Caption)


class BaseParameters(BaseModel):
    """Fields shared by every model family.

    Attribute names are snake_case; ``to_wire`` emits the API's own key names.
    Keys the model does not know about are kept and sent through unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, frozen=True)

    params_version: int = 3
    width: int = Field(default=832, gt=0)
    height: int = Field(default=1216, gt=0)
    scale: Union[int, float] = 5
    sampler: str = "k_euler_ancestral"
    steps: int = Field(default=23, gt=0)
    seed: Optional[int] = Field(default=None, ge=0, le=SEED_MAX)
    n_samples: int = 1
    uc_preset: int = Field(default=0, alias="ucPreset")
    quality_toggle: bool = Field(default=True, alias="qualityToggle")
    dynamic_thresholding: bool = False
    controlnet_strength: Union[int, float] = 1
    legacy: bool = False
    add_original_image: bool = True
    cfg_rescale: Union[int, float] = 0
    noise_schedule: str = "karras"
    legacy_v3_extend: bool = False
    skip_cfg_above_sigma: Optional[float] = None
    character_prompts: list[CharacterPrompt] = Field(default_factory=list, alias="characterPrompts")
    negative_prompt: str = ""
    reference_image_multiple: list[str] = Field(default_factory=list)
    reference_information_extracted_multiple: list[Any] = Field(default_factory=list)
    reference_strength_multiple: list[float] = Field(default_factory=list)
    deliberate_euler_ancestral_bug: bool = False
    prefer_brownian: bool = True

    @field_validator("character_prompts", mode="before")
    @classmethod
    def _coerce_character_prompts(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [{"prompt": item} if isinstance(item, str) else item for item in v]
        return v

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class NAI3Parameters(BaseParameters):
    """Parameter shape for nai-diffusion-3, nai-diffusion-2 and safe-diffusion."""

    sm: bool = False
    sm_dyn: bool = False


class NAI4Parameters(BaseParameters):
    use_coords: bool = False
    v4_prompt: V4Prompt = Field(default_factory=V4Prompt)
    v4_negative_prompt: V4NegativePrompt = Field(default_factory=V4NegativePrompt)


Parameters = Union[NAI3Parameters, NAI4Parameters]


@dataclass(frozen=True)
class GenerationRequest:
    input: str
    model: str
    parameters: Parameters
    action: str = "generate"

    def to_wire(self) -> dict[str, Any]:
        return {
            "input": self.input,
            "model": self.model,
            "action": self.action,
            "parameters": self.parameters.to_wire(),
        }


@dataclass(frozen=True)
class GenerationResult:
    success: bool
    image_path: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.success and (self.image_path is None or self.error is not None):
            raise ValueError("A successful result needs an image_path and no error")
        if not self.success and (self.error is None or self.image_path is not None):
            raise ValueError("A failed result needs an error and no image_path")

    @classmethod
    def ok(cls, image_path: str) -> "GenerationResult":
        return cls(success=True, image_path=image_path)

    @classmethod
    def failed(cls, error: str) -> "GenerationResult":
        return cls(success=False, error=error)
