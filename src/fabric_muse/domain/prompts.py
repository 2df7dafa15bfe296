"""Prompt construction for garment renders."""

from typing import Literal, get_args

from pydantic import BaseModel, ConfigDict, Field

FabricType = Literal[
    "Cotton", "Linen", "Silk", "Denim", "Polyester", "Wool", "Tweed", "Velvet"
]
GarmentType = Literal["Shirt", "T-Shirt", "Dress", "Trousers", "Jacket", "Skirt"]
Lighting = Literal["Studio", "Natural", "Warm", "Cool", "Dramatic"]
Background = Literal["White Studio", "Grey Gradient", "Outdoor", "Minimalist"]
Fit = Literal["Slim", "Regular", "Relaxed", "Oversized"]
ModelGender = Literal["Male", "Female"]
MeasurementUnit = Literal["cm", "in"]

POSE_INSTRUCTIONS: tuple[str, ...] = (
    "standing front view, hands relaxed at sides",
    "three-quarter view, one hand in pocket",
    "side profile view, walking pose",
    "standing back view, looking over shoulder",
)
POSE_LABELS: tuple[str, ...] = (
    "front-view",
    "three-quarter",
    "side-profile",
    "back-view",
)
MAX_FAN_OUT = len(POSE_INSTRUCTIONS)

SWATCH_FIDELITY = "Strictly use the FIRST reference image for fabric texture/color."
SILHOUETTE_FIDELITY = (
    "Strictly use the SECOND reference image for the exact garment silhouette and "
    "structure. The final output must match the shape of the second image perfectly."
)
REFINE_FABRIC_FIDELITY = "Maintain the fabric texture from the second reference"
REFINE_SILHOUETTE_FIDELITY = (
    "strictly follow the garment design from the third reference image"
)


class PromptOptions(BaseModel):
    """Garment and styling choices used to build the base prompt."""

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    fabric_type: FabricType = Field(default="Cotton", alias="fabricType")
    garment_type: GarmentType = Field(default="Shirt", alias="garmentType")
    lighting: Lighting = "Studio"
    background: Background = "White Studio"
    fit: Fit = "Regular"
    model_gender: ModelGender = Field(default="Male", alias="modelGender")
    repeat_width: float | None = Field(default=None, gt=0, alias="repeatWidth")
    repeat_height: float | None = Field(default=None, gt=0, alias="repeatHeight")
    repeat_unit: MeasurementUnit = Field(default="cm", alias="repeatUnit")


def option_choices() -> dict[str, list[str]]:
    """Return the selectable values for every enumerated option."""
    return {
        "fabricType": list(get_args(FabricType)),
        "garmentType": list(get_args(GarmentType)),
        "lighting": list(get_args(Lighting)),
        "background": list(get_args(Background)),
        "fit": list(get_args(Fit)),
        "modelGender": list(get_args(ModelGender)),
        "repeatUnit": list(get_args(MeasurementUnit)),
    }


def build_prompt(options: PromptOptions) -> str:
    """Build the base product-photo prompt from configuration."""
    parts = [
        f"A photorealistic product image of a {options.model_gender.lower()} model "
        f"wearing a {options.fit.lower()} fit {options.garment_type.lower()} made "
        f"from {options.fabric_type.lower()} fabric.",
        "The garment should accurately replicate the texture, color, and pattern of "
        "the provided fabric swatch.",
    ]
    repeat = _repeat_clause(options)
    if repeat:
        parts.append(repeat)
    parts.append(
        f"{options.lighting} lighting, {options.background.lower()} background."
    )
    parts.append("High-end fashion photography, editorial quality, 8K resolution.")
    return " ".join(parts)


def pose_prompts(prompt: str, fan_out: int, has_silhouette: bool) -> list[str]:
    """Return one prompt per pose, in pose order, truncated to ``fan_out``."""
    prompts = []
    for pose in POSE_INSTRUCTIONS[:fan_out]:
        text = f"{prompt}. Model pose: {pose}. {SWATCH_FIDELITY}"
        if has_silhouette:
            text = f"{text} {SILHOUETTE_FIDELITY}"
        prompts.append(text)
    return prompts


def refinement_prompt(prompt: str, has_silhouette: bool) -> str:
    """Return the prompt for refining an already rendered image."""
    if has_silhouette:
        return f"{prompt}. {REFINE_FABRIC_FIDELITY} and {REFINE_SILHOUETTE_FIDELITY}."
    return f"{prompt}. {REFINE_FABRIC_FIDELITY}."


def _repeat_clause(options: PromptOptions) -> str | None:
    if options.repeat_width is None or options.repeat_height is None:
        return None
    return (
        f"The fabric pattern repeats every {options.repeat_width:g} x "
        f"{options.repeat_height:g} {options.repeat_unit}; keep the print scale "
        "true to that size on the garment."
    )
