from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from secalert.lib.alerts import ConfigError, Rule
from secalert.lib.alerts.registry import build_rules, load_rules_file
from secalert.lib.utils.coerce import to_bool


@dataclass
class DatabaseConfig:
    engine: str
    name: str
    path: Path

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, base_dir: Optional[Path] = None) -> "DatabaseConfig":
        path = Path(data.get("path", "data"))
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        return cls(
            engine=data.get("type", "sqlite"),
            name=data.get("name", "alerts.db"),
            path=path,
        )


@dataclass
class StorageConfig:
    backend: str = "memory"
    database: Optional[DatabaseConfig] = None

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        database: Optional[Dict[str, Any]] = None,
        *,
        base_dir: Optional[Path] = None,
    ) -> "StorageConfig":
        backend = str(data.get("backend", "memory")).strip().lower()
        if backend not in {"memory", "sqlite"}:
            raise ConfigError(f"Unsupported storage backend '{backend}'")
        database_config = None
        if backend == "sqlite":
            database_config = DatabaseConfig.from_dict(database or {}, base_dir=base_dir)
        return cls(backend=backend, database=database_config)


@dataclass
class EmailConfig:
    smtp_host: str
    from_address: str
    smtp_port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    timeout: float = 10.0
    attempts: int = 3

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmailConfig":
        smtp_host = data.get("smtp_host") or os.getenv("SMTP_HOST")
        if not smtp_host:
            raise ConfigError("Email notifications enabled but 'smtp_host' is not set")
        return cls(
            smtp_host=str(smtp_host),
            smtp_port=int(data.get("smtp_port") or os.getenv("SMTP_PORT") or 587),
            username=str(data.get("username") or os.getenv("SMTP_USER") or ""),
            password=str(data.get("password") or os.getenv("SMTP_PASS") or ""),
            from_address=str(data.get("from_address") or os.getenv("ALERT_FROM") or "alerts@example.com"),
            use_tls=to_bool(data.get("use_tls"), default=True),
            timeout=float(data.get("timeout", 10.0)),
            attempts=int(data.get("attempts", 3)),
        )


@dataclass
class WebhookConfig:
    timeout: float = 10.0
    attempts: int = 3
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebhookConfig":
        headers = data.get("headers") or {}
        if not isinstance(headers, dict):
            raise ConfigError("Webhook 'headers' must be a mapping")
        return cls(
            timeout=float(data.get("timeout", 10.0)),
            attempts=int(data.get("attempts", 3)),
            headers={str(key): str(value) for key, value in headers.items()},
        )


@dataclass
class NotificationsConfig:
    email: Optional[EmailConfig] = None
    webhook: Optional[WebhookConfig] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationsConfig":
        email_conf = data.get("email")
        webhook_conf = data.get("webhook")
        email = None
        webhook = None
        if isinstance(email_conf, dict) and to_bool(email_conf.get("enabled"), default=True):
            email = EmailConfig.from_dict(email_conf)
        if isinstance(webhook_conf, dict) and to_bool(webhook_conf.get("enabled"), default=True):
            webhook = WebhookConfig.from_dict(webhook_conf)
        return cls(email=email, webhook=webhook)


@dataclass
class LoggingConfig:
    level: int = logging.INFO
    directory: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, base_dir: Optional[Path] = None) -> "LoggingConfig":
        raw_level = str(data.get("level", "INFO")).upper()
        level = logging.getLevelName(raw_level)
        if not isinstance(level, int):
            raise ConfigError(f"Unknown logging level '{raw_level}'")
        directory = data.get("directory")
        path = Path(directory) if directory else None
        if path is not None and base_dir is not None and not path.is_absolute():
            path = base_dir / path
        return cls(level=level, directory=path)


@dataclass
class SecAlertConfig:
    rules: List[Rule] = field(default_factory=list)
    storage: StorageConfig = field(default_factory=StorageConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, base_dir: Optional[Path] = None) -> "SecAlertConfig":
        rules: List[Rule] = build_rules(data.get("rules") or [])
        rules_file = data.get("rules_file")
        if rules_file:
            rules_path = Path(rules_file)
            if base_dir is not None and not rules_path.is_absolute():
                rules_path = base_dir / rules_path
            rules.extend(load_rules_file(rules_path))
            ids = [rule.id for rule in rules]
            duplicates = sorted({rule_id for rule_id in ids if ids.count(rule_id) > 1})
            if duplicates:
                raise ConfigError(f"Duplicate rule id(s): {', '.join(duplicates)}")

        return cls(
            rules=rules,
            storage=StorageConfig.from_dict(
                data.get("storage") or {},
                data.get("database"),
                base_dir=base_dir,
            ),
            notifications=NotificationsConfig.from_dict(data.get("notifications") or {}),
            logging=LoggingConfig.from_dict(data.get("logging") or {}, base_dir=base_dir),
        )


@dataclass
class AppConfig:
    secalert: SecAlertConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any], *, base_dir: Optional[Path] = None) -> "AppConfig":
        if not isinstance(data, dict) or not isinstance(data.get("secalert"), dict):
            raise ConfigError("Configuration must contain a 'secalert' section")
        return cls(secalert=SecAlertConfig.from_dict(data["secalert"], base_dir=base_dir))


def app_config(file_path: str | Path) -> AppConfig:
    path = Path(file_path)
    with open(path, "r", encoding="utf-8") as file:
        config_dict = yaml.safe_load(file)
    return AppConfig.from_dict(config_dict, base_dir=path.resolve().parent)
