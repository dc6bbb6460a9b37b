import json
import logging

from lingofuse.cli.main import main


def _run(capsys, *argv):
    code = main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


def test_predict_reports_language(tmp_path, capsys):
    state = str(tmp_path / "state.db")
    code, payload = _run(capsys, "--state", state, "predict", "नमस्ते दुनिया")

    assert code == 0
    assert payload["language"] == "hi"
    assert payload["explanation"][0].startswith("blend: hi")


def test_correct_stats_and_reset(tmp_path, capsys):
    state = str(tmp_path / "state.db")

    code, payload = _run(
        capsys, "--state", state, "correct", "kem cho", "--detected", "hi", "--correct", "gu", "--noise", "0.1"
    )
    assert code == 0
    assert payload == {"ledger_size": 1, "persisted": True, "retrain_due": False}

    code, stats = _run(capsys, "--state", state, "stats")
    assert code == 0
    assert stats["total_corrections"] == 1
    assert stats["learned_language_patterns"] == 1

    code, stats = _run(capsys, "--state", state, "reset")
    assert code == 0
    assert stats["total_corrections"] == 0

    code, stats = _run(capsys, "--state", state, "stats")
    assert stats["total_corrections"] == 0


def test_errors_are_reported(tmp_path, capsys):
    code = main(["-c", str(tmp_path / "missing.yaml"), "stats"])
    captured = capsys.readouterr()
    assert code == 1
    assert captured.err.startswith("Error:")


def test_config_logging_level_is_applied(tmp_path, capsys):
    cfg_path = tmp_path / "cfg.json"
    cfg_path.write_text(json.dumps({"logging": {"level": "DEBUG"}}), encoding="utf-8")
    logger = logging.getLogger("lingofuse")
    try:
        code, _ = _run(capsys, "-c", str(cfg_path), "--state", str(tmp_path / "state.db"), "stats")
        assert code == 0
        assert logger.level == logging.DEBUG

        code, _ = _run(
            capsys, "-c", str(cfg_path), "--state", str(tmp_path / "state.db"), "--log-level", "ERROR", "stats"
        )
        assert code == 0
        assert logger.level == logging.ERROR
    finally:
        logger.setLevel(logging.WARNING)


def test_bad_log_level_is_reported(tmp_path, capsys):
    code = main(["--log-level", "LOUD", "--state", str(tmp_path / "state.db"), "stats"])
    assert code == 1
    assert "Unknown logging level" in capsys.readouterr().err
