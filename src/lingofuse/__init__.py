# __init__.py
# SPDX-License-Identifier: MIT
"""
Top-level package exports for :mod:`lingofuse`.

Public surface and stability
----------------------------
lingofuse exposes a *small* stable API. The symbols listed in
:data:`PRIMARY_API` are the recommended public surface and are exported via
:data:`__all__`. Typical callers:

- Build an :class:`EngineConfig` (or load one with
  :func:`load_config_from_path`).
- Wrap their language detectors so each exposes ``detect(text)`` returning a
  ``{language: confidence}`` mapping.
- Construct a :class:`LanguageFeedbackEngine`, call ``predict`` for every
  utterance and ``submit_correction`` whenever the user fixes a detection.

Examples:
    >>> from lingofuse import EngineConfig, LanguageFeedbackEngine, ScriptDetector
    >>> cfg = EngineConfig()
    >>> cfg.storage.path = "state/learning.db"
    >>> engine = LanguageFeedbackEngine([ScriptDetector()], config=cfg)
    >>> result = engine.predict("vanakkam")
    >>> engine.submit_correction("vanakkam", result.language, "ta", result.confidence)
"""

from __future__ import annotations

try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("lingofuse")
except Exception:  # PackageNotFoundError or runtime env oddities
    __version__ = "0.0.0+unknown"


# ---------------------------------------------------------------------------
# Primary public API (stable; exported via __all__)
# ---------------------------------------------------------------------------
from .core.config import EngineConfig, load_config_from_path
from .core.context import ContextTracker
from .core.detectors import CallableDetector, ScriptDetector, make_language_detector
from .core.engine import LanguageFeedbackEngine
from .core.interfaces import LanguageDetector, ScoreMap, StateStore
from .core.log import configure_logging, get_logger
from .core.records import (
    ContextSignature,
    Correction,
    CorrectionOutcome,
    LearningStats,
    NoiseLevel,
    PredictionResult,
)
from .core.state_store import MemoryStateStore, SQLiteStateStore

# ---------------------------------------------------------------------------
# Advanced / expert API (imported for convenience; not exported via __all__)
# ---------------------------------------------------------------------------
from .core.blend import blend, leader
from .core.context import ContextualPattern, ContextualPatternStore
from .core.ledger import CorrectionLedger
from .core.patterns import LanguagePattern, PatternLibrary
from .core.state import EngineState
from .core.weights import AdaptiveWeightStore

PRIMARY_API = [
    "__version__",
    "EngineConfig",
    "load_config_from_path",
    "LanguageFeedbackEngine",
    "LanguageDetector",
    "ScoreMap",
    "StateStore",
    "ScriptDetector",
    "CallableDetector",
    "make_language_detector",
    "ContextTracker",
    "ContextSignature",
    "NoiseLevel",
    "Correction",
    "CorrectionOutcome",
    "PredictionResult",
    "LearningStats",
    "SQLiteStateStore",
    "MemoryStateStore",
    "configure_logging",
    "get_logger",
]

__all__ = list(PRIMARY_API)
