from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from secalert.lib.alerts import ConfigError, InMemoryAlertStore
from secalert.lib.config import AppConfig, app_config
from secalert.lib.logging_utils import setup_debug_logging
from secalert.lib.persistence import SqlAlertStore
from secalert.lib.setup import build_alert_engine, build_store, initialize_environment


def _config(**section) -> dict:
    return {"secalert": section}


def test_minimal_config_defaults(tmp_path: Path):
    config = AppConfig.from_dict(_config(), base_dir=tmp_path)

    settings = config.secalert
    assert settings.rules == []
    assert settings.storage.backend == "memory"
    assert settings.storage.database is None
    assert settings.notifications.email is None
    assert settings.notifications.webhook is None
    assert settings.logging.level == logging.INFO


def test_missing_section_is_rejected():
    with pytest.raises(ConfigError):
        AppConfig.from_dict({"alerts": {}})
    with pytest.raises(ConfigError):
        AppConfig.from_dict(None)  # type: ignore[arg-type]


def test_email_requires_smtp_host(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    with pytest.raises(ConfigError):
        AppConfig.from_dict(_config(notifications={"email": {"enabled": True}}))


def test_email_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "mail.internal")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("SMTP_USER", "alerts")
    monkeypatch.setenv("SMTP_PASS", "secret")
    monkeypatch.setenv("ALERT_FROM", "secalert@internal")

    config = AppConfig.from_dict(_config(notifications={"email": {}}))

    email = config.secalert.notifications.email
    assert email.smtp_host == "mail.internal"
    assert email.smtp_port == 2525
    assert email.username == "alerts"
    assert email.password == "secret"
    assert email.from_address == "secalert@internal"
    assert email.use_tls is True


def test_disabled_channels_are_skipped():
    config = AppConfig.from_dict(
        _config(notifications={"email": {"enabled": "no"}, "webhook": {"enabled": False}})
    )
    assert config.secalert.notifications.email is None
    assert config.secalert.notifications.webhook is None


def test_rules_file_is_resolved_relative_to_config(tmp_path: Path):
    (tmp_path / "rules.json").write_text(
        json.dumps([{"id": "from-file", "eventType": "port_scan"}]),
        encoding="utf-8",
    )

    config = AppConfig.from_dict(
        _config(rules=[{"id": "inline", "eventType": "login_failure"}], rules_file="rules.json"),
        base_dir=tmp_path,
    )

    assert [rule.id for rule in config.secalert.rules] == ["inline", "from-file"]


def test_duplicate_ids_across_inline_and_file_rules(tmp_path: Path):
    (tmp_path / "rules.json").write_text(json.dumps([{"id": "dup", "eventType": "a"}]), encoding="utf-8")

    with pytest.raises(ConfigError):
        AppConfig.from_dict(
            _config(rules=[{"id": "dup", "eventType": "b"}], rules_file="rules.json"),
            base_dir=tmp_path,
        )


def test_invalid_storage_and_logging_values():
    with pytest.raises(ConfigError):
        AppConfig.from_dict(_config(storage={"backend": "redis"}))
    with pytest.raises(ConfigError):
        AppConfig.from_dict(_config(logging={"level": "chatty"}))


def test_sqlite_storage_builds_sql_store(tmp_path: Path):
    config = AppConfig.from_dict(
        _config(storage={"backend": "sqlite"}, database={"name": "test.db", "path": "db"}),
        base_dir=tmp_path,
    )

    database = config.secalert.storage.database
    assert database.path == tmp_path / "db"
    store = build_store(config.secalert.storage)
    assert isinstance(store, SqlAlertStore)
    assert (tmp_path / "db" / "test.db").exists()
    store.close()
    assert isinstance(build_store(AppConfig.from_dict(_config()).secalert.storage), InMemoryAlertStore)


def test_build_alert_engine_registers_configured_channels():
    config = AppConfig.from_dict(
        _config(
            rules=[{"id": "r", "eventType": "login_failure"}],
            notifications={"email": {"smtp_host": "smtp.example.com"}, "webhook": {"headers": {"X-A": 1}}},
        )
    )

    engine = build_alert_engine(config)

    assert [rule.id for rule in engine.rules] == ["r"]
    assert set(engine.dispatcher.channels) == {"email", "webhook"}


def test_app_config_reads_yaml_and_initializes_environment(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "secalert:\n"
        "  rules:\n"
        "    - id: r\n"
        "      eventType: login_failure\n"
        "  logging:\n"
        "    level: DEBUG\n"
        "    directory: var/log\n",
        encoding="utf-8",
    )

    config = app_config(path)
    assert config.secalert.logging.directory == path.resolve().parent / "var" / "log"

    _, engine = initialize_environment(
        {"secalert": {"logging": {"directory": str(tmp_path / "logs")}}},
        base_dir=tmp_path,
    )
    assert engine.rules == ()
    assert (tmp_path / "logs").is_dir()


def test_setup_debug_logging_adds_single_file_handler(tmp_path: Path):
    setup_debug_logging(tmp_path)
    logger = setup_debug_logging(tmp_path)

    handlers = [handler for handler in logger.handlers if isinstance(handler, logging.FileHandler)]
    assert len(handlers) == 1
    assert logger.name == "secalert"
