# config.py
# SPDX-License-Identifier: MIT
"""Configuration models and helpers for the lingofuse engine.

This module defines declarative dataclasses for blending, learning rates,
pattern and context tuning, storage, and logging, along with helpers for
serializing and loading configurations from JSON and TOML.
"""
from __future__ import annotations

import json
try:  # pragma: no cover - optional dependency
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    try:
        import tomli as tomllib  # type: ignore[assignment]
    except Exception:  # pragma: no cover
        tomllib = None  # type: ignore[assignment]
from collections.abc import Sequence as ABCSequence
from dataclasses import dataclass, field, is_dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from .log import configure_logging, PACKAGE_LOGGER_NAME


# ---------------------------------------------------------------------------
# Blend mode helpers
# ---------------------------------------------------------------------------


class BlendMode:
    """Supported ways of merging detector score maps.

    Modes:
    * ``PAIRWISE``: fold each new value into the current one as
      ``(current + new) / 2``. Later detectors weigh more.
    * ``MEAN``: arithmetic mean of every detector that reported the language.
    """

    PAIRWISE = "pairwise"
    MEAN = "mean"
    ALL = {PAIRWISE, MEAN}

    @classmethod
    def normalize(cls, value: Optional[str]) -> str:
        mode = (value or cls.PAIRWISE).strip().lower()
        if mode not in cls.ALL:
            raise ValueError(f"Invalid blend mode: {value!r}. Expected one of {sorted(cls.ALL)}")
        return mode


# ---------------------------------------------------------------------------
# Stage configs
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class BlendConfig:
    """Settings for the ensemble blender."""
    mode: str = BlendMode.PAIRWISE


@dataclass(slots=True)
class LearningConfig:
    """Correction-driven learning knobs.

    Attributes:
        learning_rate (float): Additive weight step applied per correction.
        min_weight (float): Lower clamp for adaptive weights.
        max_weight (float): Upper clamp for adaptive weights.
        max_corrections (int): Ledger capacity; oldest corrections are
            evicted first.
        retraining_threshold (int): Every time the ledger size reaches a
            multiple of this value a retrain-due signal is raised.
        accuracy_window (int): Number of corrections per window when
            comparing recent agreement against the preceding window.
    """
    learning_rate: float = 0.01
    min_weight: float = 0.5
    max_weight: float = 2.0
    max_corrections: int = 1000
    retraining_threshold: int = 50
    accuracy_window: int = 10


@dataclass(slots=True)
class PatternConfig:
    """Tuning for the literal-recurrence pattern library."""
    max_samples: int = 100
    char_increment: float = 0.01
    word_increment: float = 0.1
    min_word_length: int = 3
    nudge_factor: float = 0.1


@dataclass(slots=True)
class ContextConfig:
    """Tuning for contextual (time/session) patterns."""
    hour_tolerance: int = 2
    adjustment_factor: float = 0.05
    reinforce_step: float = 0.1
    max_strength: float = 2.0


@dataclass(slots=True)
class StorageConfig:
    """Where learned state lives.

    ``path`` points at a SQLite file; when None the state is held in memory
    only and lost at exit. ``persist_async`` hands saves to a background
    worker; the next engine call waits for it to finish.
    """
    path: Optional[str] = None
    persist_async: bool = False


@dataclass(slots=True)
class LoggingConfig:
    """Controls the package logger; set propagate=False to keep records
    away from the host application's root handlers.
    """
    level: int | str = "WARNING"
    propagate: bool = True
    fmt: Optional[str] = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logger_name: str = PACKAGE_LOGGER_NAME

    def apply(self) -> None:
        """Apply this logging configuration to the package logger."""
        configure_logging(
            level=self.level,
            propagate=self.propagate,
            fmt=self.fmt,
            logger_name=self.logger_name or PACKAGE_LOGGER_NAME,
        )


# ---------------------------------------------------------------------------
# Master config
# ---------------------------------------------------------------------------

T = TypeVar("T")


@dataclass(slots=True)
class EngineConfig:
    """Declarative configuration for one engine instance.

    Holds only knobs and scalar values; detectors, stores and callbacks are
    runtime wiring passed to the engine constructor instead.

    Attributes:
        default_language (str): Language reported when no detector produced
            a signal.
        languages (tuple[str, ...] | None): Optional allow-list; scores for
            other languages are dropped after blending.
    """
    default_language: str = "hi"
    languages: Optional[Tuple[str, ...]] = None
    blend: BlendConfig = field(default_factory=BlendConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    patterns: PatternConfig = field(default_factory=PatternConfig)
    context: ContextConfig = field(default_factory=ContextConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        if self.languages is not None:
            self.languages = tuple(str(code) for code in self.languages)

    def validate(self) -> None:
        """Validate the configuration for internal consistency.

        Normalizes ``blend.mode`` and raises ValueError when a knob is out of
        range.
        """
        self.blend.mode = BlendMode.normalize(self.blend.mode)
        if not self.default_language:
            raise ValueError("default_language must be a non-empty language code.")

        learning = self.learning
        if not (0.0 < learning.learning_rate <= 1.0):
            raise ValueError(f"learning.learning_rate must be in (0, 1]; got {learning.learning_rate!r}.")
        if not (0.0 < learning.min_weight <= learning.max_weight):
            raise ValueError(
                "learning.min_weight must be positive and not exceed learning.max_weight; "
                f"got {learning.min_weight!r} > {learning.max_weight!r}."
            )
        if not (learning.min_weight <= 1.0 <= learning.max_weight):
            raise ValueError("learning weight bounds must include the default weight 1.0.")

        numeric_positive = [
            ("learning.max_corrections", learning.max_corrections),
            ("learning.retraining_threshold", learning.retraining_threshold),
            ("learning.accuracy_window", learning.accuracy_window),
            ("patterns.max_samples", self.patterns.max_samples),
            ("patterns.min_word_length", self.patterns.min_word_length),
            ("context.max_strength", self.context.max_strength),
        ]
        for name, value in numeric_positive:
            if value is None or value <= 0:
                raise ValueError(f"{name} must be positive; got {value!r}.")

        non_negative = [
            ("patterns.char_increment", self.patterns.char_increment),
            ("patterns.word_increment", self.patterns.word_increment),
            ("patterns.nudge_factor", self.patterns.nudge_factor),
            ("context.hour_tolerance", self.context.hour_tolerance),
            ("context.adjustment_factor", self.context.adjustment_factor),
            ("context.reinforce_step", self.context.reinforce_step),
        ]
        for name, value in non_negative:
            if value is None or value < 0:
                raise ValueError(f"{name} must not be negative; got {value!r}.")
        if self.context.max_strength < 1.0:
            raise ValueError("context.max_strength must be at least the initial strength 1.0.")

    # -------------------------
    # Serialization helpers
    # -------------------------
    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation of this configuration."""
        return _dataclass_to_dict(self)

    def to_json(self, path: Path | str, *, indent: int = 2) -> str:
        """Serialize the configuration to JSON and write it to disk.

        Args:
            path (Path | str): Target file path.
            indent (int): Indentation level passed to ``json.dumps``.

        Returns:
            str: String path to the written file.
        """
        target = Path(path)
        target.write_text(json.dumps(self.to_dict(), indent=indent, sort_keys=True), encoding="utf-8")
        return str(target)

    @classmethod
    def from_dict(cls: Type[T], data: Mapping[str, Any]) -> T:
        return _dataclass_from_dict(cls, data)

    @classmethod
    def from_json(cls: Type[T], path: Path | str) -> T:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_dict(payload)

    @classmethod
    def from_toml(cls: Type[T], path: Path | str) -> T:
        """
        Load an EngineConfig from a TOML file.

        The TOML layout mirrors this dataclass: top-level keys such as
        ``default_language`` plus tables [blend], [learning], [patterns],
        [context], [storage] and [logging].
        """
        if tomllib is None:
            raise RuntimeError(
                "TOML support requires Python 3.11+ (tomllib) or installing the 'tomli' package."
            )
        data = tomllib.loads(Path(path).read_bytes().decode("utf-8"))
        if not isinstance(data, Mapping):
            raise TypeError(f"Top-level TOML document must be a mapping; got {type(data).__name__}.")
        return cls.from_dict(data)


def load_config_from_path(path: str | Path) -> EngineConfig:
    """Load an EngineConfig from a JSON or TOML file.
    Args:
        path (Path | str): Path to a ``.toml`` or ``.json`` config
            file.
    Returns:
        EngineConfig: Parsed configuration instance.
    Raises:
        ValueError: If the file extension is not ``.toml`` or ``.json``.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".toml":
        return EngineConfig.from_toml(p)
    if suffix == ".json":
        return EngineConfig.from_json(p)
    raise ValueError(f"Unsupported config extension {p.suffix!r}; expected .toml or .json.")


def _dataclass_to_dict(obj: Any) -> Dict[str, Any]:
    """Serialize dataclasses to JSON-friendly dicts, skipping None fields."""
    result: Dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        serialized = _serialize_value(value)
        if serialized is not None:
            result[f.name] = serialized
    return result


def _serialize_value(value: Any) -> Any:
    """Best-effort JSON-friendly coercion; drops values that cannot be serialized."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for k, v in value.items():
            serialized = _serialize_value(v)
            if serialized is not None:
                out[str(k)] = serialized
        return out
    if is_dataclass(value):
        return _dataclass_to_dict(value)
    return None


def _dataclass_from_dict(cls: Type[T], data: Mapping[str, Any] | None) -> T:
    """Instantiate a dataclass of type `cls` from a mapping.

    Unknown keys are ignored so older config files keep loading.
    """
    if data is None:
        return cls()  # type: ignore[call-arg]
    type_hints = get_type_hints(cls)

    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        field_type = type_hints.get(f.name, f.type)
        kwargs[f.name] = _coerce_value(field_type, data[f.name])
    return cls(**kwargs)  # type: ignore[arg-type]


def _coerce_value(expected_type: Any, value: Any) -> Any:
    """Coerce `value` into the shape implied by `expected_type`."""
    base_type, _ = _strip_optional(expected_type)
    if value is None:
        return None
    if is_dataclass_type(base_type):
        return _dataclass_from_dict(base_type, value)
    origin = get_origin(base_type)
    if origin in (list, tuple, ABCSequence):
        args = get_args(base_type)
        inner = args[0] if args else Any
        items = [_coerce_value(inner, v) for v in value]
        return tuple(items) if origin is tuple else list(items)
    if origin is dict:
        key_type, val_type = get_args(base_type) if get_args(base_type) else (Any, Any)
        return {_coerce_value(key_type, k): _coerce_value(val_type, v) for k, v in value.items()}
    if base_type in {str, int, float, bool}:
        return base_type(value)
    return value


def _strip_optional(typ: Any) -> Tuple[Any, bool]:
    """Strip Optional from a type annotation.

    Returns:
        tuple[Any, bool]: ``(base_type, is_optional)``.
    """
    origin = get_origin(typ)
    if origin is Union:
        args = [arg for arg in get_args(typ) if arg is not type(None)]
        if len(args) == 1:
            base, _ = _strip_optional(args[0])
            return base, True
    return typ, False


def is_dataclass_type(typ: Any) -> bool:
    """Return True if `typ` is a dataclass type (not an instance)."""
    try:
        return isinstance(typ, type) and is_dataclass(typ)
    except Exception:
        return False


__all__ = [
    "BlendMode",
    "BlendConfig",
    "LearningConfig",
    "PatternConfig",
    "ContextConfig",
    "StorageConfig",
    "LoggingConfig",
    "EngineConfig",
    "load_config_from_path",
]
