# interfaces.py
# SPDX-License-Identifier: MIT
"""Interfaces and protocols shared across detectors, stores, and the engine."""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)

# -----------------------------------------------------------------------------
# Shared aliases
# -----------------------------------------------------------------------------

# Language code -> confidence. Codes are opaque keys (ISO 639-1 style by
# convention); confidences are in [0, 1] but need not sum to 1.
ScoreMap = Dict[str, float]

# Named JSON documents making up the persisted learning state.
StateDocuments = Dict[str, Any]

# (text, correct_language) pairs handed to retrain listeners.
TrainingPairs = Tuple[Tuple[str, str], ...]
RetrainCallback = Callable[[int, TrainingPairs], None]


# -----------------------------------------------------------------------------
# Detector contract
# -----------------------------------------------------------------------------

@runtime_checkable
class LanguageDetector(Protocol):
    """Anything that turns text into per-language confidences.

    Implementations return ``None`` (or an empty mapping) when they have no
    opinion. Raising is tolerated by the engine and treated the same way.
    """

    def detect(self, text: str) -> Optional[Mapping[str, float]]:
        ...


# -----------------------------------------------------------------------------
# Persistence contract
# -----------------------------------------------------------------------------

@runtime_checkable
class StateStore(Protocol):
    """Durable home for the engine's learned state.

    The state is exchanged as a mapping of record name to JSON-compatible
    payload. ``save`` and ``clear`` must be all-or-nothing.
    """

    def load(self) -> Optional[StateDocuments]:
        ...

    def save(self, documents: StateDocuments) -> None:
        ...

    def clear(self) -> None:
        ...

    def close(self) -> None:
        ...


def detector_name(detector: Any) -> str:
    """Return a stable, human-readable name for a detector instance."""
    name = getattr(detector, "name", None)
    if isinstance(name, str) and name:
        return name
    return type(detector).__name__


__all__ = [
    "ScoreMap",
    "StateDocuments",
    "TrainingPairs",
    "RetrainCallback",
    "LanguageDetector",
    "StateStore",
    "detector_name",
]
