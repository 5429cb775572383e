"""
Rule-based mood / condition classification from detector signals.

Both classifiers are ordered rule tables: every rule is checked in order and the
last one that applies sets the label and confidence. Chained "else" branches are
encoded in the rule predicates, so the table alone shows the override order.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from core.models import (
    ConditionResult,
    DetectedFaceSignals,
    LightingAssessment,
    MoodResult,
)

# -----------------------------------------------------------------------------
# Thresholds
# -----------------------------------------------------------------------------
EYES_CLOSED_BELOW = 0.3        # average eye openness
EYES_HEAVY_BELOW = 0.5
STRESS_SMILE_BELOW = 0.3
VERY_HAPPY_ABOVE = 0.8
HAPPY_ABOVE = 0.5
SAD_BELOW = 0.2

LOW_LIGHT_PENALTY = 0.8
BRIGHT_LIGHT_PENALTY = 0.9
LOW_BRIGHTNESS_BELOW = 0.3
HIGH_BRIGHTNESS_ABOVE = 0.8

MOOD_ANALYZING = "Analyzing..."
MOOD_NO_FACE = "No face detected"
MOOD_NEUTRAL = "Neutral"
NEUTRAL_CONFIDENCE = 0.5


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


@dataclass(frozen=True)
class Features:
    """Signals the rules read; smile is known whenever the rules run."""
    smile: float
    eye: Optional[float]
    head_turned: bool


@dataclass(frozen=True)
class Rule:
    name: str
    applies: Callable[[Features], bool]
    confidence: Callable[[Features], float]


def _eyes_closed(f: Features) -> bool:
    return f.eye is not None and f.eye < EYES_CLOSED_BELOW

def _eyes_heavy(f: Features) -> bool:
    return f.eye is not None and EYES_CLOSED_BELOW <= f.eye < EYES_HEAVY_BELOW


MOOD_RULES: Tuple[Rule, ...] = (
    Rule("Tired", _eyes_closed, lambda f: 1.0 - f.eye),
    Rule("Stressed", lambda f: _eyes_heavy(f) and f.smile < STRESS_SMILE_BELOW, lambda f: 0.8),
    Rule("Very Happy", lambda f: f.smile > VERY_HAPPY_ABOVE, lambda f: f.smile),
    Rule("Happy", lambda f: HAPPY_ABOVE < f.smile <= VERY_HAPPY_ABOVE, lambda f: f.smile),
    Rule("Sad", lambda f: f.smile < SAD_BELOW, lambda f: 1.0 - f.smile),
    Rule("Looking Away", lambda f: f.head_turned, lambda f: 0.8),
)

CONDITION_RULES: Tuple[Rule, ...] = (
    Rule("Fatigued", _eyes_closed, lambda f: 1.0 - f.eye),
    Rule("Tired", _eyes_heavy, lambda f: 0.8),
    Rule("Distracted", lambda f: f.head_turned, lambda f: 0.9),
)

# (applies to brightness, label suffix, confidence factor); first match only
LIGHTING_QUALIFIERS: Tuple[Tuple[Callable[[float], bool], str, float], ...] = (
    (lambda b: b < LOW_BRIGHTNESS_BELOW, " (Low Light)", LOW_LIGHT_PENALTY),
    (lambda b: b > HIGH_BRIGHTNESS_ABOVE, " (Bright Light)", BRIGHT_LIGHT_PENALTY),
)


def _last_match(rules: Sequence[Rule], f: Features, label: str, conf: float) -> Tuple[str, float]:
    for rule in rules:
        if rule.applies(f):
            label, conf = rule.name, rule.confidence(f)
    return label, conf


def _features(face: DetectedFaceSignals, smile: float) -> Features:
    return Features(smile=smile, eye=face.eye_openness, head_turned=face.head_turned)


def classify_mood(face: DetectedFaceSignals, is_low_light: bool) -> MoodResult:
    """
    Mood label for one face. Unknown smile -> "Analyzing..." with 0 confidence.
    Low light discounts the final confidence by 20%.
    """
    if face.smiling_probability is None:
        return MoodResult(label=MOOD_ANALYZING, confidence=0.0)

    f = _features(face, face.smiling_probability)
    label, conf = _last_match(MOOD_RULES, f, MOOD_NEUTRAL, NEUTRAL_CONFIDENCE)
    if is_low_light:
        conf *= LOW_LIGHT_PENALTY
    return MoodResult(label=label, confidence=clamp01(conf))


def classify_condition(face: DetectedFaceSignals, brightness: float) -> ConditionResult:
    """Physical condition for one face, qualified by the lighting it was seen in."""
    # smile is not read by the condition rules
    f = _features(face, face.smiling_probability or 0.0)
    label, conf = _last_match(CONDITION_RULES, f, "Normal", 1.0)
    for applies, suffix, factor in LIGHTING_QUALIFIERS:
        if applies(brightness):
            label += suffix
            conf *= factor
            break
    return ConditionResult(label=label, confidence=clamp01(conf))


def classify_face(
    faces: List[DetectedFaceSignals],
    lighting: LightingAssessment,
) -> Tuple[MoodResult, Optional[ConditionResult]]:
    """
    Classify the first detected face; with no faces the condition is cleared.
    """
    if not faces:
        return MoodResult(label=MOOD_NO_FACE, confidence=0.0), None
    face = faces[0]
    return (
        classify_mood(face, lighting.is_low_light),
        classify_condition(face, lighting.brightness),
    )
