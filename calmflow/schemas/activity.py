from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ActivityType(str, Enum):
    BREATHING = "breathing"
    GROUNDING = "grounding"
    JOURNAL = "journal"
    RESET = "reset"
    FOCUS = "focus"


ActivityTone = Literal["primary", "warm", "calm", "neutral"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class BreathingConfig(_Frozen):
    type: Literal["breathing"] = "breathing"
    pattern_id: Optional[str] = None
    inhale: int = Field(ge=0)
    hold1: int = Field(default=0, ge=0)
    exhale: int = Field(ge=0)
    hold2: int = Field(default=0, ge=0)
    cycles: int = Field(ge=1)

    @field_validator("hold1", "hold2", mode="before")
    @classmethod
    def _missing_hold_is_zero(cls, v):
        return 0 if v is None else v


class GroundingConfig(_Frozen):
    type: Literal["grounding"] = "grounding"
    technique_id: Optional[str] = None
    steps: tuple[str, ...] = ()


class JournalPromptItem(_Frozen):
    id: str
    prompt: str


class JournalConfig(_Frozen):
    type: Literal["journal"] = "journal"
    prompt_id: Optional[str] = None
    prompt: Optional[str] = None
    prompts: tuple[JournalPromptItem, ...] = ()
    reflection_duration: Optional[int] = Field(default=None, ge=1)
    show_text_input: bool = True


class ResetStep(_Frozen):
    instruction: str
    duration: int = Field(ge=0)


class ResetConfig(_Frozen):
    type: Literal["reset"] = "reset"
    exercise_id: str
    steps: tuple[ResetStep, ...] = ()


class FocusConfig(_Frozen):
    type: Literal["focus"] = "focus"
    soundscape_id: Optional[str] = None
    target_minutes: float = Field(gt=0)


ActivityConfig = Annotated[
    Union[BreathingConfig, GroundingConfig, JournalConfig, ResetConfig, FocusConfig],
    Field(discriminator="type"),
]


class Activity(_Frozen):
    id: str
    type: ActivityType
    name: str
    description: Optional[str] = None
    duration: int = Field(ge=0)  # estimated seconds
    tone: ActivityTone = "neutral"
    source_id: Optional[str] = None  # library key; None for ad-hoc activities
    config: ActivityConfig

    @model_validator(mode="after")
    def _config_matches_type(self):
        if self.config.type != self.type.value:
            raise ValueError(f"config type {self.config.type!r} does not match activity type {self.type.value!r}")
        return self


class ActivityRef(BaseModel):
    """
    Caller-side reference to an activity, resolved against the content library.
    - breathing / grounding / focus / reset: `source_id` is the library key
    - reset may instead carry `name` + `steps` for an ad-hoc exercise
    - journal: `source_id` is an optional prompt id, `prompt` the freeform text
    """
    type: ActivityType
    source_id: Optional[str] = None
    name: Optional[str] = None
    prompt: Optional[str] = None
    steps: Optional[list[ResetStep]] = None
