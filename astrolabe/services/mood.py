"""Keyword heuristics that assign a mood to an APOD entry."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

NEUTRAL_MOOD = "neutral"
NEUTRAL_SCORE = 0.5

# Placeholder until palettes are extracted from the image itself.
PLACEHOLDER_PALETTE = ("#0A192F", "#172A45", "#30415D", "#566E87", "#B9D5F0")

# Checked in order; the first group that matches wins.
MOOD_RULES: tuple[tuple[str, float, re.Pattern[str]], ...] = (
    (
        "awe",
        0.85,
        re.compile(r"\b(nebula|galaxy|stars|serene|calm|deep space)\b"),
    ),
    (
        "energetic",
        0.8,
        re.compile(r"\b(sun|flare|energetic|supernova|explosion)\b"),
    ),
    (
        "mysterious",
        0.9,
        re.compile(r"\b(dark|shadow|void|black hole|mysterious)\b"),
    ),
    (
        "contemplative",
        0.75,
        re.compile(r"\b(earth|planet|home|our world|satellite)\b"),
    ),
)


@dataclass(frozen=True)
class MoodAnalysis:
    mood: str
    score: float
    palette: list[str] = field(default_factory=lambda: list(PLACEHOLDER_PALETTE))


def classify_mood(title: str | None, explanation: str | None) -> MoodAnalysis:
    """Classify the combined, lower-cased title and explanation."""
    text = f"{title or ''} {explanation or ''}".lower()
    for mood, score, pattern in MOOD_RULES:
        if pattern.search(text):
            return MoodAnalysis(mood, score)
    return MoodAnalysis(NEUTRAL_MOOD, NEUTRAL_SCORE)
