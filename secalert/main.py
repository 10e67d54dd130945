from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import yaml

from secalert.lib.alerts import Alert, AlertEngine, ValidationError
from secalert.lib.setup import initialize_environment


PROJECT_ROOT = Path(__file__).resolve().parent
_config_override = os.getenv("SECALERT_CONFIG")
CONFIG_PATH = Path(_config_override) if _config_override else PROJECT_ROOT / "config.yaml"

logger = logging.getLogger("secalert.cli")


def load_engine(config_path: Path) -> AlertEngine:
    with open(config_path, "r", encoding="utf-8") as config_file:
        config_data = yaml.safe_load(config_file)
    _app_config, engine = initialize_environment(config_data, base_dir=config_path.resolve().parent)
    return engine


async def replay_events(
    engine: AlertEngine,
    lines: Sequence[str],
    *,
    strict: bool = False,
) -> tuple[List[Alert], int]:
    """
    Submit each JSON line as an event and wait for every dispatch.

    Returns the final alert states and the number of rejected lines. With
    ``strict`` the first invalid line aborts the replay.
    """
    submissions = []
    rejected = 0
    for line_number, raw in enumerate(lines, start=1):
        raw = raw.strip()
        if not raw:
            continue
        try:
            payload = json.loads(raw)
            submissions.append(await engine.submit_event(payload))
        except (json.JSONDecodeError, ValidationError) as exc:
            rejected += 1
            print(f"line {line_number}: rejected ({exc})", file=sys.stderr)
            logger.warning("cli.event_rejected", extra={"line": line_number, "error": str(exc)})
            if strict:
                break

    finished: List[Alert] = []
    for submission in submissions:
        finished.extend(await submission.wait())
    await engine.drain()
    return finished, rejected


def _format_alert(alert: Alert) -> str:
    failed = [delivery.channel for delivery in alert.deliveries if not delivery.success]
    suffix = f" (failed: {', '.join(failed)})" if failed else ""
    return f"{alert.id}  [{alert.severity.value.upper()}] {alert.rule_name} -> {alert.status.value}{suffix}"


async def _run(config_path: Path, events_path: Optional[Path], strict: bool) -> int:
    engine = load_engine(config_path)
    try:
        if events_path is None:
            lines = sys.stdin.read().splitlines()
        else:
            lines = events_path.read_text(encoding="utf-8").splitlines()
        alerts, rejected = await replay_events(engine, lines, strict=strict)
    finally:
        await engine.close()

    for alert in alerts:
        print(_format_alert(alert))
    print(f"{len(alerts)} alert(s) dispatched, {rejected} event(s) rejected.")
    if strict and rejected:
        return 1
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Replay security events through the alert engine.")
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help="Path to the YAML configuration file.",
    )
    parser.add_argument(
        "--events",
        type=Path,
        default=None,
        help="JSON-lines file of events (reads stdin when omitted).",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Stop at the first invalid event and exit non-zero.",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    return asyncio.run(_run(args.config, args.events, args.strict))


if __name__ == "__main__":
    sys.exit(main())
