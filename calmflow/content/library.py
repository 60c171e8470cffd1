"""
Built-in content libraries.

These are the lookup boundary the core resolves activities against. Each
`get_*_by_id` returns the entry or None; turning a miss into an error is the
caller's job (see `calmflow.services.activities`).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional


@dataclass(slots=True, frozen=True)
class BreathingPattern:
    id: str
    name: str
    description: str
    inhale: int
    exhale: int
    cycles: int
    hold1: int = 0
    hold2: int = 0
    category: str = "calm"


@dataclass(slots=True, frozen=True)
class GroundingTechnique:
    id: str
    name: str
    description: str
    duration: str  # display label such as "3 min"
    steps: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class FocusSession:
    id: str
    name: str
    description: str
    duration_minutes: int
    default_sound: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ResetExercise:
    id: str
    name: str
    description: str
    steps: tuple[tuple[str, int], ...]  # (instruction, seconds)


@dataclass(slots=True, frozen=True)
class JournalPrompt:
    id: str
    prompt: str
    category: str = "reflection"


BREATHING_PATTERNS: list[BreathingPattern] = [
    BreathingPattern("box-breathing", "Box Breathing", "Steady, even breathing to stay calm under pressure",
                     inhale=4, hold1=4, exhale=4, hold2=4, cycles=4, category="focus"),
    BreathingPattern("4-7-8-calm", "4-7-8 Calm", "Long hold and exhale for anxiety and sleep",
                     inhale=4, hold1=7, exhale=8, cycles=4),
    BreathingPattern("energizing-breath", "Energizing Breath", "Quick bursts to boost energy",
                     inhale=2, exhale=2, cycles=15, category="energy"),
    BreathingPattern("slow-wave", "Slow Wave", "Extended exhale for deep relaxation",
                     inhale=4, exhale=8, cycles=6),
    BreathingPattern("coherent", "Coherent Breathing", "Five in, five out",
                     inhale=5, exhale=5, cycles=10, category="focus"),
]

GROUNDING_TECHNIQUES: list[GroundingTechnique] = [
    GroundingTechnique("5-4-3-2-1", "5-4-3-2-1 Senses", "Name what you see, hear, touch, smell, taste", "2 min", (
        "Take a deep breath and look around you",
        "Name 5 things you can SEE",
        "Name 4 things you can TOUCH",
        "Name 3 things you can HEAR",
        "Name 2 things you can SMELL",
        "Name 1 thing you can TASTE",
        "Take another deep breath. You are here.",
    )),
    GroundingTechnique("body-anchor", "Body Anchor", "Feel feet on floor, seat, hands", "90 sec", (
        "Press your feet firmly into the floor",
        "Feel the weight of your body in your seat",
        "Notice where your hands are resting",
        "Press your palms together firmly for 5 seconds",
        "Release and feel the sensation",
        "You are grounded. You are here.",
    )),
    GroundingTechnique("cold-water", "Cold Water Reset", "Use temperature to interrupt a spiral", "quick", (
        "Run cold water over your wrists",
        "Notice the temperature on your skin",
        "Breathe slowly while the water runs",
    )),
    GroundingTechnique("room-scan", "Room Scan", "Slowly describe the space around you", "3 min", (
        "Pick one corner of the room",
        "Describe every object you can see there",
        "Move to the next corner and repeat",
        "Notice one colour that appears more than once",
    )),
]

FOCUS_SESSIONS: list[FocusSession] = [
    FocusSession("power-start", "Power Start", "Deep work intention setting", 25, "library"),
    FocusSession("quick-sprint", "Quick Sprint", "Short burst for an avoided task", 15, "coffee-shop"),
    FocusSession("clarity-pause", "Clarity Pause", "Step back before deciding", 5, "gentle-rain"),
]

RESET_EXERCISES: list[ResetExercise] = [
    ResetExercise("jaw-release", "Jaw Release", "Release tension from jaw and face", (
        ("Let your jaw drop open slightly", 15),
        ("Place your tongue on the roof of your mouth", 15),
        ("Slowly open your mouth wide, then close", 20),
        ("Move your jaw gently side to side", 20),
        ("Let your jaw rest in a relaxed position", 20),
    )),
    ResetExercise("shoulder-drop", "Shoulder Drop", "Release tension from shoulders and upper back", (
        ("Inhale and lift your shoulders to your ears", 10),
        ("Hold for 5 seconds", 5),
        ("Exhale and drop them completely", 10),
        ("Roll your shoulders backward 5 times", 20),
        ("Roll your shoulders forward 5 times", 20),
    )),
    ResetExercise("hand-shake", "Hand Shake Out", "Release nervous energy through movement", (
        ("Shake out your hands loosely", 20),
        ("Shake out your arms from the shoulders", 20),
        ("Let your hands fall still and notice the tingling", 20),
    )),
]

JOURNAL_PROMPTS: list[JournalPrompt] = [
    JournalPrompt("gratitude-three", "Write down three small things that went well today.", "gratitude"),
    JournalPrompt("name-the-feeling", "What are you feeling right now, and where do you notice it in your body?"),
    JournalPrompt("next-kind-step", "What is one kind thing you can do for yourself in the next hour?", "intention"),
    JournalPrompt("let-it-go", "What is one worry you can set down for tonight?", "release"),
]


def _index(items: Iterable) -> dict:
    return {item.id: item for item in items}


@dataclass
class ContentLibrary:
    """
    Lookup tables for every library-backed activity type.
    Tests build their own instance to simulate content changes between app versions.
    """
    patterns: dict[str, BreathingPattern] = field(default_factory=lambda: _index(BREATHING_PATTERNS))
    techniques: dict[str, GroundingTechnique] = field(default_factory=lambda: _index(GROUNDING_TECHNIQUES))
    focus_sessions: dict[str, FocusSession] = field(default_factory=lambda: _index(FOCUS_SESSIONS))
    reset_exercises: dict[str, ResetExercise] = field(default_factory=lambda: _index(RESET_EXERCISES))
    journal_prompts: dict[str, JournalPrompt] = field(default_factory=lambda: _index(JOURNAL_PROMPTS))

    def get_pattern_by_id(self, pattern_id: str) -> Optional[BreathingPattern]:
        return self.patterns.get(pattern_id)

    def get_technique_by_id(self, technique_id: str) -> Optional[GroundingTechnique]:
        return self.techniques.get(technique_id)

    def get_focus_session_by_id(self, session_id: str) -> Optional[FocusSession]:
        return self.focus_sessions.get(session_id)

    def get_reset_exercise_by_id(self, exercise_id: str) -> Optional[ResetExercise]:
        return self.reset_exercises.get(exercise_id)

    def get_journal_prompt_by_id(self, prompt_id: str) -> Optional[JournalPrompt]:
        return self.journal_prompts.get(prompt_id)

    def resolve(self, activity):
        """Re-derive `activity` from this library's current content. Misses raise NotFoundError."""
        from calmflow.services.activities import resolve_activity

        return resolve_activity(activity, self)


DEFAULT_LIBRARY = ContentLibrary()
