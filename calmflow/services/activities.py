from __future__ import annotations

import logging
import re
from typing import Optional, Sequence

from calmflow.content.library import DEFAULT_LIBRARY, ContentLibrary
from calmflow.content.presets import PROGRAMS, RITUALS, SOS_PRESETS
from calmflow.core.errors import NotFoundError
from calmflow.schemas.activity import (
    Activity,
    ActivityRef,
    ActivityType,
    BreathingConfig,
    FocusConfig,
    GroundingConfig,
    JournalConfig,
    JournalPromptItem,
    ResetConfig,
    ResetStep,
)
from calmflow.schemas.session import SessionMode

logger = logging.getLogger(__name__)

# Duration defaults
DEFAULT_GROUNDING_SECONDS = 180
DEFAULT_REFLECTION_SECONDS = 60
FREEFORM_JOURNAL_SECONDS = 300

_FIRST_INT = re.compile(r"(\d+)")
_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """
    Lowercase slug with runs of non-alphanumerics collapsed to one hyphen.
    "Two  Spaces" -> "two-spaces"
    """
    return _NON_ALNUM_RUN.sub("-", name.lower())


def parse_duration_label(label: Optional[str]) -> int:
    """
    First integer in a label like "3 min", read as minutes. No digits -> 180s.
    """
    match = _FIRST_INT.search(label or "")
    if not match:
        return DEFAULT_GROUNDING_SECONDS
    return int(match.group(1)) * 60


def _breathing_seconds(config: BreathingConfig) -> int:
    return (config.inhale + config.hold1 + config.exhale + config.hold2) * config.cycles


def _journal_seconds(config: JournalConfig) -> int:
    if not config.prompts:
        return config.reflection_duration or FREEFORM_JOURNAL_SECONDS
    return len(config.prompts) * (config.reflection_duration or DEFAULT_REFLECTION_SECONDS)


def _reset_seconds(config: ResetConfig) -> int:
    return sum(step.duration for step in config.steps)


def _focus_seconds(config: FocusConfig) -> int:
    return int(round(config.target_minutes * 60))


_ESTIMATORS = {
    "breathing": _breathing_seconds,
    "journal": _journal_seconds,
    "reset": _reset_seconds,
    "focus": _focus_seconds,
}


def estimate_duration(config, *, duration_label: Optional[str] = None) -> int:
    """
    Estimated activity length in seconds.
    Grounding has no timing in its config, so it is derived from the
    library's duration label.
    """
    if config.type == "grounding":
        return parse_duration_label(duration_label)
    return _ESTIMATORS[config.type](config)


def create_breathing_activity(pattern_id: str, library: ContentLibrary = DEFAULT_LIBRARY) -> Activity:
    pattern = library.get_pattern_by_id(pattern_id)
    if pattern is None:
        raise NotFoundError("Breathing pattern", pattern_id)
    config = BreathingConfig(
        pattern_id=pattern.id,
        inhale=pattern.inhale,
        hold1=pattern.hold1,
        exhale=pattern.exhale,
        hold2=pattern.hold2,
        cycles=pattern.cycles,
    )
    return Activity(
        id=f"breathing-{pattern.id}",
        type=ActivityType.BREATHING,
        name=pattern.name,
        description=pattern.description,
        duration=estimate_duration(config),
        tone="calm" if pattern.category in ("calm", "sleep") else "primary",
        source_id=pattern.id,
        config=config,
    )


def create_grounding_activity(technique_id: str, library: ContentLibrary = DEFAULT_LIBRARY) -> Activity:
    technique = library.get_technique_by_id(technique_id)
    if technique is None:
        raise NotFoundError("Grounding technique", technique_id)
    config = GroundingConfig(technique_id=technique.id, steps=technique.steps)
    return Activity(
        id=f"grounding-{technique.id}",
        type=ActivityType.GROUNDING,
        name=technique.name,
        description=technique.description,
        duration=estimate_duration(config, duration_label=technique.duration),
        tone="calm",
        source_id=technique.id,
        config=config,
    )


def create_focus_activity(session_id: str, library: ContentLibrary = DEFAULT_LIBRARY) -> Activity:
    focus = library.get_focus_session_by_id(session_id)
    if focus is None:
        raise NotFoundError("Focus session", session_id)
    config = FocusConfig(soundscape_id=focus.default_sound, target_minutes=focus.duration_minutes)
    return Activity(
        id=f"focus-{focus.id}",
        type=ActivityType.FOCUS,
        name=focus.name,
        description=focus.description,
        duration=estimate_duration(config),
        tone="primary",
        source_id=focus.id,
        config=config,
    )


def create_reset_activity(name: str, steps: Sequence[ResetStep | dict], *, source_id: Optional[str] = None) -> Activity:
    exercise_id = slugify(name)
    config = ResetConfig(exercise_id=exercise_id, steps=tuple(steps))
    return Activity(
        id=f"reset-{source_id or exercise_id}",
        type=ActivityType.RESET,
        name=name,
        duration=estimate_duration(config),
        tone="neutral",
        source_id=source_id,
        config=config,
    )


def create_reset_activity_from_library(exercise_id: str, library: ContentLibrary = DEFAULT_LIBRARY) -> Activity:
    exercise = library.get_reset_exercise_by_id(exercise_id)
    if exercise is None:
        raise NotFoundError("Reset exercise", exercise_id)
    steps = [ResetStep(instruction=text, duration=seconds) for text, seconds in exercise.steps]
    return create_reset_activity(exercise.name, steps, source_id=exercise.id)


def create_journal_activity(
    prompt: Optional[str] = None,
    prompt_id: Optional[str] = None,
    *,
    prompts: Sequence[JournalPromptItem] = (),
    reflection_duration: Optional[int] = None,
    show_text_input: bool = True,
    source_id: Optional[str] = None,
) -> Activity:
    config = JournalConfig(
        prompt_id=prompt_id,
        prompt=prompt,
        prompts=tuple(prompts),
        reflection_duration=reflection_duration,
        show_text_input=show_text_input,
    )
    return Activity(
        id=f"journal-{prompt_id or 'freeform'}",
        type=ActivityType.JOURNAL,
        name="Journal",
        description=prompt,
        duration=estimate_duration(config),
        tone="warm",
        source_id=source_id,
        config=config,
    )


def create_journal_activity_from_library(prompt_id: str, library: ContentLibrary = DEFAULT_LIBRARY) -> Activity:
    entry = library.get_journal_prompt_by_id(prompt_id)
    if entry is None:
        raise NotFoundError("Journal prompt", prompt_id)
    return create_journal_activity(entry.prompt, entry.id, source_id=entry.id)


def activity_from_ref(ref: ActivityRef, library: ContentLibrary = DEFAULT_LIBRARY) -> Activity:
    """
    Build an Activity from a caller reference. Library misses raise NotFoundError.
    """
    if ref.type == ActivityType.JOURNAL:
        if ref.source_id:
            return create_journal_activity_from_library(ref.source_id, library)
        return create_journal_activity(ref.prompt)
    if ref.type == ActivityType.RESET and ref.source_id is None:
        if not ref.name:
            raise ValueError("Ad-hoc reset activities need a name")
        return create_reset_activity(ref.name, ref.steps or [])
    if not ref.source_id:
        raise ValueError(f"{ref.type.value} activities need a source_id")
    return _LIBRARY_FACTORIES[ref.type](ref.source_id, library)


_LIBRARY_FACTORIES = {
    ActivityType.BREATHING: create_breathing_activity,
    ActivityType.GROUNDING: create_grounding_activity,
    ActivityType.FOCUS: create_focus_activity,
    ActivityType.RESET: create_reset_activity_from_library,
    ActivityType.JOURNAL: create_journal_activity_from_library,
}


def resolve_activity(activity: Activity, library: ContentLibrary = DEFAULT_LIBRARY) -> Activity:
    """
    Re-derive a library-backed activity from current content.
    Ad-hoc activities (no source_id) always resolve to themselves.
    """
    if activity.source_id is None:
        return activity
    return _LIBRARY_FACTORIES[activity.type](activity.source_id, library)


def build_queue(refs: Sequence[ActivityRef], library: ContentLibrary = DEFAULT_LIBRARY) -> list[Activity]:
    return [activity_from_ref(ref, library) for ref in refs]


def build_preset_queue(
    mode: SessionMode,
    preset_id: str,
    *,
    day: Optional[int] = None,
    library: ContentLibrary = DEFAULT_LIBRARY,
) -> tuple[list[Activity], str, str]:
    """
    Resolve a ritual, SOS preset or program day into (queue, source_id, label).
    """
    if mode == SessionMode.RITUAL:
        preset = RITUALS.get(preset_id)
        if preset is None:
            raise NotFoundError("Ritual", preset_id)
        return build_queue(preset.activities, library), preset.id, preset.name
    if mode == SessionMode.SOS:
        preset = SOS_PRESETS.get(preset_id)
        if preset is None:
            raise NotFoundError("SOS preset", preset_id)
        return build_queue(preset.activities, library), preset.id, preset.name
    if mode == SessionMode.PROGRAM_DAY:
        program = PROGRAMS.get(preset_id)
        if program is None:
            raise NotFoundError("Program", preset_id)
        day = day or 1
        if day > len(program.days):
            raise NotFoundError("Program day", f"{preset_id}/{day}")
        logger.debug("Building program %s day %s", preset_id, day)
        return build_queue(program.days[day - 1], library), f"{program.id}-day{day}", program.name
    raise ValueError(f"{mode.value} sessions are not preset-backed")
