from __future__ import annotations

from typing import Optional

from .types import DEFAULT_MODEL, GenerationRequest, Parameters

SUPPORTED_ACTIONS = ("generate",)


def build_request(
    prompt: Optional[str],
    model: Optional[str],
    parameters: Parameters,
    action: str = "generate",
) -> GenerationRequest:
    """Assemble the literal request sent to the generation endpoint.

    Raises:
        ValueError: If the action is not supported or the parameters are
            incomplete (no seed has been drawn yet).
    """
    if action not in SUPPORTED_ACTIONS:
        raise ValueError(f"Unsupported action '{action}'. Supported: {list(SUPPORTED_ACTIONS)}")
    if parameters.seed is None:
        raise ValueError("Parameters are incomplete: seed is not set")

    return GenerationRequest(
        input=prompt or "",
        model=model or DEFAULT_MODEL,
        parameters=parameters,
        action=action,
    )
