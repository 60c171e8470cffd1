"""
Curated activity sequences: rituals, SOS presets and program days.
"""
from __future__ import annotations

from dataclasses import dataclass

from calmflow.schemas.activity import ActivityRef, ActivityType


@dataclass(slots=True, frozen=True)
class Preset:
    id: str
    name: str
    activities: tuple[ActivityRef, ...]


@dataclass(slots=True, frozen=True)
class Program:
    id: str
    name: str
    days: tuple[tuple[ActivityRef, ...], ...]


def _ref(kind: ActivityType, source_id: str | None = None, **kw) -> ActivityRef:
    return ActivityRef(type=kind, source_id=source_id, **kw)


B, G, J, R, F = (ActivityType.BREATHING, ActivityType.GROUNDING, ActivityType.JOURNAL,
                 ActivityType.RESET, ActivityType.FOCUS)

RITUALS: dict[str, Preset] = {
    p.id: p for p in [
        Preset("morning-reset", "Morning Reset", (
            _ref(B, "coherent"),
            _ref(R, "shoulder-drop"),
            _ref(J, "next-kind-step"),
        )),
        Preset("evening-wind-down", "Evening Wind Down", (
            _ref(R, "jaw-release"),
            _ref(B, "4-7-8-calm"),
            _ref(J, "let-it-go"),
        )),
    ]
}

SOS_PRESETS: dict[str, Preset] = {
    p.id: p for p in [
        Preset("panic-relief", "Panic Relief", (
            _ref(B, "4-7-8-calm"),
            _ref(G, "5-4-3-2-1"),
        )),
        Preset("overwhelm", "Overwhelm", (
            _ref(G, "body-anchor"),
            _ref(B, "box-breathing"),
            _ref(R, "hand-shake"),
        )),
    ]
}

PROGRAMS: dict[str, Program] = {
    p.id: p for p in [
        Program("calm-week", "Calm Week", (
            (_ref(B, "slow-wave"), _ref(J, "name-the-feeling")),
            (_ref(G, "room-scan"), _ref(B, "box-breathing")),
            (_ref(R, "jaw-release"), _ref(B, "4-7-8-calm"), _ref(J, "gratitude-three")),
        )),
    ]
}
