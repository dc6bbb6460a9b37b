# main.py
# SPDX-License-Identifier: MIT

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from typing import Optional, Sequence

from ..core.config import EngineConfig, load_config_from_path
from ..core.detectors import make_language_detector
from ..core.engine import LanguageFeedbackEngine
from ..core.records import ContextSignature, NoiseLevel


def _add_context_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--previous-language", help="Language of the previous utterance, if known.")
    parser.add_argument(
        "--noise",
        type=float,
        help="Ambient noise level in [0, 1]; bucketed into quiet/moderate/noisy/veryNoisy.",
    )
    parser.add_argument(
        "--session-elapsed",
        type=float,
        default=0.0,
        help="Seconds since the session started.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level lingofuse CLI argument parser.

    Subcommands operate on one persisted learning state: ``predict`` ranks a
    text, ``correct`` records a user correction, ``stats`` prints learning
    counters and ``reset`` wipes everything learned.

    Returns:
        argparse.ArgumentParser: Configured argument parser for the CLI.
    """
    parser = argparse.ArgumentParser(prog="lingofuse", description="lingofuse CLI")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g., DEBUG, INFO, WARNING); overrides the config file.",
    )
    parser.add_argument("-c", "--config", help="Path to config file (TOML or JSON).")
    parser.add_argument("--state", help="SQLite file holding learned state (overrides storage.path).")
    parser.add_argument(
        "--detector",
        action="append",
        choices=["script", "lingua"],
        help="Detector backend to query; repeat to ensemble several. Defaults to 'script'.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    predict_p = subparsers.add_parser("predict", help="Rank languages for a text.")
    predict_p.add_argument("text", help="Text to classify.")
    _add_context_args(predict_p)

    correct_p = subparsers.add_parser("correct", help="Record a user correction.")
    correct_p.add_argument("text", help="Text that was misdetected.")
    correct_p.add_argument("--detected", required=True, help="Language the engine reported.")
    correct_p.add_argument("--correct", required=True, help="Language the user confirmed.")
    correct_p.add_argument("--confidence", type=float, default=0.0, help="Confidence of the original detection.")
    _add_context_args(correct_p)

    subparsers.add_parser("stats", help="Print learning statistics.")
    subparsers.add_parser("reset", help="Wipe all learned state.")
    return parser


def _load_config(args: argparse.Namespace) -> EngineConfig:
    cfg = load_config_from_path(args.config) if args.config else EngineConfig()
    if args.state:
        cfg.storage.path = args.state
    if args.log_level:
        cfg.logging.level = args.log_level
    # One-shot process: the save must land before exit.
    cfg.storage.persist_async = False
    return cfg


def _context_from_args(args: argparse.Namespace) -> ContextSignature:
    noise = NoiseLevel.MODERATE if args.noise is None else NoiseLevel.classify(args.noise)
    return ContextSignature.at(
        datetime.now(),
        previous_language=args.previous_language,
        session_elapsed=args.session_elapsed,
        ambient_noise=noise,
    )


def _dispatch(args: argparse.Namespace) -> int:
    """Dispatch a parsed CLI command to the appropriate handler.

    Args:
        args (argparse.Namespace): Parsed arguments from the top-level
            argument parser.

    Returns:
        int: Process exit code, where 0 indicates success and non-zero
        values indicate failure.
    """
    cfg = _load_config(args)
    cfg.logging.apply()
    detectors = [make_language_detector(name) for name in (args.detector or ["script"])]

    with LanguageFeedbackEngine([d for d in detectors if d is not None], config=cfg) as engine:
        cmd = args.command

        if cmd == "predict":
            result = engine.predict(args.text, _context_from_args(args))
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
            return 0

        if cmd == "correct":
            outcome = engine.submit_correction(
                args.text,
                args.detected,
                args.correct,
                args.confidence,
                _context_from_args(args),
            )
            payload = {
                "ledger_size": outcome.ledger_size,
                "persisted": outcome.persisted,
                "retrain_due": outcome.retrain_due,
            }
            print(json.dumps(payload, indent=2))
            return 0 if outcome.persisted else 1

        if cmd == "stats":
            print(json.dumps(engine.get_stats().to_dict(), indent=2))
            return 0

        if cmd == "reset":
            engine.reset()
            print(json.dumps(engine.get_stats().to_dict(), indent=2))
            return 0

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the lingofuse command-line interface.

    Args:
        argv (Sequence[str] | None): Optional list of argument strings to
            parse instead of ``sys.argv[1:]``. Primarily useful for tests.

    Returns:
        int: Process exit code, where 0 indicates success and non-zero
        values indicate failure.
    """
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        return _dispatch(args)
    except Exception as exc:  # noqa: BLE001
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
