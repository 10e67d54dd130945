from __future__ import annotations

import asyncio
import json
from pathlib import Path

from secalert.lib.alerts import AlertStatus
from secalert.main import main, replay_events

from stubs import make_engine, make_rule


EVENTS = [
    json.dumps({"type": "login_failure", "data": {"count": 5}}),
    "",
    "not json",
    json.dumps({"type": "login_failure"}),
    json.dumps({"type": "login_failure", "data": {"count": 1}}),
    json.dumps({"type": "login_failure", "data": {"count": 12}}),
]


def test_replay_events_counts_rejections():
    engine = make_engine([make_rule()])

    alerts, rejected = asyncio.run(replay_events(engine, EVENTS))

    assert rejected == 2
    assert len(alerts) == 2
    assert all(alert.status is AlertStatus.SENT for alert in alerts)


def test_replay_events_strict_stops_at_first_rejection():
    engine = make_engine([make_rule()])

    alerts, rejected = asyncio.run(replay_events(engine, EVENTS, strict=True))

    assert rejected == 1
    assert len(alerts) == 1


def _write_inputs(tmp_path: Path) -> tuple[Path, Path]:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "secalert:\n"
        "  rules:\n"
        "    - id: brute-force\n"
        "      name: Brute force login\n"
        "      eventType: login_failure\n"
        "      severity: high\n"
        "      conditions:\n"
        "        - field: count\n"
        "          operator: greater_than\n"
        "          value: 3\n",
        encoding="utf-8",
    )
    events_path = tmp_path / "events.jsonl"
    events_path.write_text("\n".join(EVENTS) + "\n", encoding="utf-8")
    return config_path, events_path


def test_main_prints_summary(tmp_path: Path, capsys):
    config_path, events_path = _write_inputs(tmp_path)

    exit_code = main(["--config", str(config_path), "--events", str(events_path)])

    captured = capsys.readouterr()
    assert exit_code == 0
    assert captured.out.count("[HIGH] Brute force login -> sent") == 2
    assert "2 alert(s) dispatched, 2 event(s) rejected." in captured.out
    assert "line 3: rejected" in captured.err


def test_main_strict_exits_non_zero(tmp_path: Path, capsys):
    config_path, events_path = _write_inputs(tmp_path)

    exit_code = main(["--config", str(config_path), "--events", str(events_path), "--strict"])

    assert exit_code == 1
    assert "1 event(s) rejected" in capsys.readouterr().out
