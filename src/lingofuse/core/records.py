# records.py
# SPDX-License-Identifier: MIT
"""Value types shared by the engine stages.

Every type here is immutable once built and converts to and from plain
JSON-friendly dicts, which is the shape the state stores persist.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

__all__ = [
    "NoiseLevel",
    "ContextSignature",
    "Correction",
    "CorrectionOutcome",
    "PredictionResult",
    "LearningStats",
    "hour_distance",
]


class NoiseLevel:
    """Ambient noise buckets attached to a context signature.

    Values:
    * ``QUIET``: numeric level below 0.2.
    * ``MODERATE``: below 0.5.
    * ``NOISY``: below 0.8.
    * ``VERY_NOISY``: anything louder.
    """

    QUIET = "quiet"
    MODERATE = "moderate"
    NOISY = "noisy"
    VERY_NOISY = "veryNoisy"
    ALL = (QUIET, MODERATE, NOISY, VERY_NOISY)

    @classmethod
    def normalize(cls, value: str | None) -> str:
        if value is None:
            return cls.MODERATE
        for level in cls.ALL:
            if level.lower() == str(value).strip().lower():
                return level
        raise ValueError(f"Invalid noise level: {value!r}. Expected one of {list(cls.ALL)}")

    @classmethod
    def classify(cls, level: float) -> str:
        """Bucket a numeric noise level in [0, 1] into a named level."""
        if level < 0.2:
            return cls.QUIET
        if level < 0.5:
            return cls.MODERATE
        if level < 0.8:
            return cls.NOISY
        return cls.VERY_NOISY


def hour_distance(a: int, b: int) -> int:
    """Return the circular distance between two hours of the day."""
    diff = abs(a - b) % 24
    return min(diff, 24 - diff)


@dataclass(slots=True, frozen=True)
class ContextSignature:
    """Situational context attached to a prediction or a correction.

    Attributes:
        hour_of_day (int): Local hour, 0..23.
        day_of_week (int): ISO weekday, 1 (Monday) .. 7 (Sunday).
        previous_language (str | None): Language of the previous utterance
            in the session, when known.
        session_elapsed (float): Seconds since the session started.
        ambient_noise (str): One of :class:`NoiseLevel` values.
    """

    hour_of_day: int
    day_of_week: int
    previous_language: str | None = None
    session_elapsed: float = 0.0
    ambient_noise: str = NoiseLevel.MODERATE

    def __post_init__(self) -> None:
        if not 0 <= int(self.hour_of_day) <= 23:
            raise ValueError(f"hour_of_day must be within 0..23; got {self.hour_of_day!r}.")
        if not 1 <= int(self.day_of_week) <= 7:
            raise ValueError(f"day_of_week must be within 1..7; got {self.day_of_week!r}.")
        object.__setattr__(self, "ambient_noise", NoiseLevel.normalize(self.ambient_noise))

    def matches(self, other: ContextSignature, *, hour_tolerance: int = 2) -> bool:
        """Loose OR-match: close hour, same weekday, or same previous language."""
        if hour_distance(self.hour_of_day, other.hour_of_day) <= hour_tolerance:
            return True
        if self.day_of_week == other.day_of_week:
            return True
        return self.previous_language is not None and self.previous_language == other.previous_language

    @classmethod
    def at(
        cls,
        when: datetime,
        *,
        previous_language: str | None = None,
        session_elapsed: float = 0.0,
        ambient_noise: str = NoiseLevel.MODERATE,
    ) -> ContextSignature:
        """Build a signature from a wall-clock datetime."""
        return cls(
            hour_of_day=when.hour,
            day_of_week=when.isoweekday(),
            previous_language=previous_language,
            session_elapsed=session_elapsed,
            ambient_noise=ambient_noise,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "hour_of_day": self.hour_of_day,
            "day_of_week": self.day_of_week,
            "previous_language": self.previous_language,
            "session_elapsed": self.session_elapsed,
            "ambient_noise": self.ambient_noise,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ContextSignature:
        return cls(
            hour_of_day=int(data["hour_of_day"]),
            day_of_week=int(data["day_of_week"]),
            previous_language=data.get("previous_language"),
            session_elapsed=float(data.get("session_elapsed") or 0.0),
            ambient_noise=data.get("ambient_noise") or NoiseLevel.MODERATE,
        )


@dataclass(slots=True, frozen=True)
class Correction:
    """A single user correction of a language detection."""

    text: str
    detected_language: str
    correct_language: str
    original_confidence: float
    timestamp: datetime
    context: ContextSignature
    text_length: int
    word_count: int

    @classmethod
    def create(
        cls,
        text: str,
        detected_language: str,
        correct_language: str,
        confidence: float,
        context: ContextSignature,
        *,
        timestamp: datetime | None = None,
    ) -> Correction:
        """Build a correction, deriving the length counters from ``text``."""
        text = text or ""
        return cls(
            text=text,
            detected_language=detected_language,
            correct_language=correct_language,
            original_confidence=float(confidence),
            timestamp=timestamp or datetime.now(timezone.utc),
            context=context,
            text_length=len(text),
            word_count=len(text.split()),
        )

    @property
    def was_correct(self) -> bool:
        """True when the detector already agreed with the user."""
        return self.detected_language == self.correct_language

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "detected_language": self.detected_language,
            "correct_language": self.correct_language,
            "original_confidence": self.original_confidence,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context.to_dict(),
            "text_length": self.text_length,
            "word_count": self.word_count,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Correction:
        text = str(data.get("text") or "")
        return cls(
            text=text,
            detected_language=str(data["detected_language"]),
            correct_language=str(data["correct_language"]),
            original_confidence=float(data.get("original_confidence") or 0.0),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            context=ContextSignature.from_dict(data["context"]),
            text_length=int(data.get("text_length", len(text))),
            word_count=int(data.get("word_count", len(text.split()))),
        )


@dataclass(slots=True, frozen=True)
class CorrectionOutcome:
    """What happened when a correction was submitted.

    ``persisted`` is False when the state store failed; the in-memory update
    still applies and the save is retried on the next mutating call.
    """

    ledger_size: int
    persisted: bool
    retrain_due: bool = False


@dataclass(slots=True, frozen=True)
class PredictionResult:
    """Ranked, explainable outcome of a single prediction."""

    language: str
    confidence: float
    scores: dict[str, float] = field(default_factory=dict)
    explanation: tuple[str, ...] = ()
    base_language: str | None = None
    base_confidence: float = 0.0

    @property
    def adjustment(self) -> float:
        """Change in the winning confidence relative to the blended leader."""
        return self.confidence - self.base_confidence

    def ranked(self) -> list[tuple[str, float]]:
        return sorted(self.scores.items(), key=lambda kv: (-kv[1], kv[0]))

    def to_dict(self) -> dict[str, Any]:
        return {
            "language": self.language,
            "confidence": self.confidence,
            "scores": dict(self.scores),
            "explanation": list(self.explanation),
            "base_language": self.base_language,
            "base_confidence": self.base_confidence,
            "adjustment": self.adjustment,
        }


@dataclass(slots=True, frozen=True)
class LearningStats:
    """Counters describing how much the engine has learned so far."""

    total_corrections: int = 0
    accuracy_trend: float = 0.0
    learned_language_patterns: int = 0
    contextual_patterns: int = 0
    learning_progress: float = 0.0
    retrain_signals: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_corrections": self.total_corrections,
            "accuracy_trend": self.accuracy_trend,
            "learned_language_patterns": self.learned_language_patterns,
            "contextual_patterns": self.contextual_patterns,
            "learning_progress": self.learning_progress,
            "retrain_signals": self.retrain_signals,
        }
