"""Tests for prompt construction."""

import pytest
from pydantic import ValidationError

from fabric_muse.domain.prompts import (
    MAX_FAN_OUT,
    POSE_INSTRUCTIONS,
    REFINE_FABRIC_FIDELITY,
    REFINE_SILHOUETTE_FIDELITY,
    SILHOUETTE_FIDELITY,
    SWATCH_FIDELITY,
    PromptOptions,
    build_prompt,
    option_choices,
    pose_prompts,
    refinement_prompt,
)


def test_build_prompt_defaults() -> None:
    prompt = build_prompt(PromptOptions())

    assert prompt.startswith(
        "A photorealistic product image of a male model wearing a regular fit shirt "
        "made from cotton fabric."
    )
    assert "Studio lighting, white studio background." in prompt
    assert "repeats every" not in prompt


def test_build_prompt_uses_aliases_and_repeat_size() -> None:
    options = PromptOptions.model_validate(
        {
            "fabricType": "Linen",
            "garmentType": "Dress",
            "modelGender": "Female",
            "fit": "Relaxed",
            "repeatWidth": 12.5,
            "repeatHeight": 10,
            "repeatUnit": "in",
        }
    )

    prompt = build_prompt(options)

    assert "female model wearing a relaxed fit dress made from linen fabric" in prompt
    assert "repeats every 12.5 x 10 in" in prompt


def test_prompt_options_reject_unknown_values() -> None:
    with pytest.raises(ValidationError):
        PromptOptions.model_validate({"fabricType": "Kevlar"})


def test_option_choices_lists_every_option() -> None:
    choices = option_choices()

    assert "Silk" in choices["fabricType"]
    assert choices["modelGender"] == ["Male", "Female"]
    assert choices["repeatUnit"] == ["cm", "in"]


def test_pose_prompts_follow_pose_order() -> None:
    prompts = pose_prompts("Base", 3, has_silhouette=False)

    assert prompts == [
        f"Base. Model pose: {pose}. {SWATCH_FIDELITY}" for pose in POSE_INSTRUCTIONS[:3]
    ]


def test_pose_prompts_with_silhouette() -> None:
    prompts = pose_prompts("Base", MAX_FAN_OUT, has_silhouette=True)

    assert len(prompts) == MAX_FAN_OUT
    assert all(prompt.endswith(SILHOUETTE_FIDELITY) for prompt in prompts)


def test_refinement_prompt() -> None:
    assert refinement_prompt("Shorter sleeves", has_silhouette=False) == (
        f"Shorter sleeves. {REFINE_FABRIC_FIDELITY}."
    )
    with_silhouette = refinement_prompt("Shorter sleeves", has_silhouette=True)
    assert REFINE_SILHOUETTE_FIDELITY in with_silhouette
