from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from novel_api.models import (
    Center,
    CharacterPrompt,
    CharCaption,
    V4Caption,
    V4NegativePrompt,
    V4Prompt,
)
from novel_api.utils.config import GenerationParameters

V3_QUALITY_SUFFIX = ",best quality, amazing quality, very aesthetic, absurdres"
V4_QUALITY_SUFFIX = ", best quality, very aesthetic, absurdres"

# The provider accepts several references, only one is ever sent.
REFERENCE_INFORMATION_EXTRACTED = 1
REFERENCE_STRENGTH = 0.6


class SchemaVersion(str, Enum):
    """Request payload generation accepted by the provider."""

    V3 = "v3"
    V4 = "v4"


FALLBACK_MODEL = "nai-diffusion-3"

MODEL_SCHEMAS: dict[str, SchemaVersion] = {
    "nai-diffusion-3": SchemaVersion.V3,
    "nai-diffusion-furry-3": SchemaVersion.V3,
    "nai-diffusion-4-full": SchemaVersion.V4,
    "nai-diffusion-4-curated-preview": SchemaVersion.V4,
    "nai-diffusion-4-5-curated": SchemaVersion.V4,
    "nai-diffusion-4-5-full": SchemaVersion.V4,
}


@dataclass(frozen=True)
class ModelRoute:
    model: str
    schema: SchemaVersion


def resolve_model(name: str) -> ModelRoute:
    """Map a requested model name to the provider model and its payload schema.

    Matching is case-sensitive. Unknown names are sent as the fallback v3 model.
    """
    schema = MODEL_SCHEMAS.get(name)
    if schema is None:
        logger.info(f"Unknown model '{name}', falling back to {FALLBACK_MODEL}")
        return ModelRoute(model=FALLBACK_MODEL, schema=SchemaVersion.V3)
    return ModelRoute(model=name, schema=schema)


def _add_reference_image(parameters: dict[str, Any], reference_image: str | None) -> None:
    if not reference_image:
        return
    parameters["reference_image_multiple"] = [reference_image]
    parameters["reference_information_extracted_multiple"] = [REFERENCE_INFORMATION_EXTRACTED]
    parameters["reference_strength_multiple"] = [REFERENCE_STRENGTH]


def build_v3_payload(
    model: str,
    prompt: str,
    seed: int,
    params: GenerationParameters,
    reference_image: str | None = None,
) -> dict[str, Any]:
    """Build the flat-parameter payload used by the v3 models."""
    parameters: dict[str, Any] = {
        "params_version": params.params_version,
        "width": params.width,
        "height": params.height,
        "scale": params.scale,
        "sampler": params.sampler,
        "steps": params.steps,
        "seed": seed,
        "n_samples": params.n_samples,
        "ucPreset": params.ucPreset,
        "qualityToggle": params.qualityToggle,
        "sm": params.sm,
        "sm_dyn": params.sm_dyn,
        "dynamic_thresholding": params.dynamic_thresholding,
        "controlnet_strength": params.controlnet_strength,
        "legacy": params.legacy,
        "add_original_image": params.add_original_image,
        "cfg_rescale": params.cfg_rescale,
        "noise_schedule": params.noise_schedule,
        "legacy_v3_extend": params.legacy_v3_extend,
        "skip_cfg_above_sigma": params.skip_cfg_above_sigma,
        "negative_prompt": params.custom_anti_words,
        "deliberate_euler_ancestral_bug": params.deliberate_euler_ancestral_bug,
        "prefer_brownian": params.prefer_brownian,
    }
    _add_reference_image(parameters, reference_image)

    return {
        "input": prompt + V3_QUALITY_SUFFIX,
        "model": model,
        "action": "generate",
        "parameters": parameters,
    }


def _char_captions(prompts: list[CharacterPrompt], negative: bool) -> list[CharCaption]:
    return [
        CharCaption(char_caption=cp.uc if negative else cp.prompt, centers=[cp.center])
        for cp in prompts
    ]


def build_v4_payload(
    model: str,
    prompt: str,
    seed: int,
    params: GenerationParameters,
    character_prompts: list[CharacterPrompt] | None = None,
    reference_image: str | None = None,
) -> dict[str, Any]:
    """
    Build the structured-caption payload used by the v4 models.

    Without character prompts a single one is synthesized from the prompt and the
    global negative text, centered at the origin. Disabled character prompts are
    dropped entirely: they reach neither caption nor the ``characterPrompts`` list.
    """
    base_caption = prompt + V4_QUALITY_SUFFIX

    if not character_prompts:
        character_prompts = [
            CharacterPrompt(
                prompt=base_caption,
                uc=params.custom_anti_words,
                center=Center(x=0, y=0),
                enabled=True,
            )
        ]
    enabled = [cp for cp in character_prompts if cp.enabled]

    v4_prompt = V4Prompt(
        caption=V4Caption(
            base_caption=base_caption,
            char_captions=_char_captions(enabled, negative=False),
        ),
        use_coords=params.use_coords,
        use_order=True,
    )
    v4_negative_prompt = V4NegativePrompt(
        caption=V4Caption(
            base_caption=params.custom_anti_words,
            char_captions=_char_captions(enabled, negative=True),
        ),
        legacy_uc=params.legacy_uc,
    )

    parameters: dict[str, Any] = {
        "params_version": params.params_version,
        "width": params.width,
        "height": params.height,
        "scale": params.scale,
        "sampler": params.sampler,
        "steps": params.steps,
        "seed": seed,
        "n_samples": params.n_samples,
        "ucPreset": params.ucPreset,
        "qualityToggle": params.qualityToggle,
        "autoSmea": params.autoSmea,
        "dynamic_thresholding": params.dynamic_thresholding,
        "controlnet_strength": params.controlnet_strength,
        "legacy": params.legacy,
        "add_original_image": params.add_original_image,
        "cfg_rescale": params.cfg_rescale,
        "noise_schedule": params.noise_schedule,
        "legacy_v3_extend": params.legacy_v3_extend,
        "skip_cfg_above_sigma": params.skip_cfg_above_sigma,
        "use_coords": params.use_coords,
        "legacy_uc": params.legacy_uc,
        "normalize_reference_strength_multiple": params.normalize_reference_strength_multiple,
        "inpaintImg2ImgStrength": params.inpaintImg2ImgStrength,
        "characterPrompts": [cp.model_dump(mode="json") for cp in enabled],
        "v4_prompt": v4_prompt.model_dump(mode="json"),
        "v4_negative_prompt": v4_negative_prompt.model_dump(mode="json"),
        "negative_prompt": params.custom_anti_words,
        "deliberate_euler_ancestral_bug": params.deliberate_euler_ancestral_bug,
        "prefer_brownian": params.prefer_brownian,
    }
    _add_reference_image(parameters, reference_image)

    return {
        "input": base_caption,
        "model": model,
        "action": "generate",
        "parameters": parameters,
        "use_new_shared_trial": params.use_new_shared_trial,
        "recaptcha_token": " ",
    }


def build_payload(
    route: ModelRoute,
    prompt: str,
    seed: int,
    params: GenerationParameters,
    reference_image: str | None = None,
    character_prompts: list[CharacterPrompt] | None = None,
) -> dict[str, Any]:
    """Build the payload for the schema the route selected."""
    if route.schema is SchemaVersion.V4:
        return build_v4_payload(
            route.model, prompt, seed, params, character_prompts, reference_image
        )
    return build_v3_payload(route.model, prompt, seed, params, reference_image)
