from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Index,
    Integer,
    MetaData,
    String,
    Table,
)


metadata = MetaData()


severity_enum = Enum(
    "critical",
    "high",
    "medium",
    "low",
    name="severity_enum",
)

status_enum = Enum(
    "pending",
    "sent",
    "failed",
    "acknowledged",
    "dismissed",
    name="alert_status_enum",
)

alerts = Table(
    "alerts",
    metadata,
    Column("row_id", Integer, primary_key=True, autoincrement=True),
    Column("alert_id", String(128), nullable=False, unique=True),
    Column("rule_id", String(128), nullable=False),
    Column("rule_name", String(255), nullable=False),
    Column("severity", severity_enum, nullable=False),
    Column("status", status_enum, nullable=False),
    Column("event", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("acknowledged_at", DateTime(timezone=True)),
    Column("acknowledged_by", String(255)),
    Column("dismissed_at", DateTime(timezone=True)),
    Column("dismissed_by", String(255)),
    Column("dispatched_at", DateTime(timezone=True)),
    Column("deliveries", JSON, nullable=False, default=list),
    Column("active", Boolean, nullable=False, default=True),
)

Index("ix_alerts_active_created", alerts.c.active, alerts.c.created_at)
Index("ix_alerts_rule_id", alerts.c.rule_id)

schema_migrations = Table(
    "schema_migrations",
    metadata,
    Column("version", String(64), primary_key=True),
    Column("applied_at", DateTime(timezone=True), nullable=False),
)
