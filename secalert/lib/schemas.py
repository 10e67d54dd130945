from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from secalert.lib.alerts import Alert, AlertStatus, Severity


class EventIn(BaseModel):
    """Raw event body; required fields are checked by the engine."""

    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    data: Optional[Any] = None
    source: Optional[str] = None
    priority: Optional[str] = None


class SecurityEventOut(BaseModel):
    type: str
    data: Dict[str, Any]
    source: str
    priority: str
    received_at: Optional[str] = None


class ChannelDeliveryOut(BaseModel):
    channel: str
    target: str
    success: bool
    error: Optional[str] = None
    completed_at: Optional[str] = None


class AlertOut(BaseModel):
    id: str
    rule_id: str
    rule_name: str
    severity: Severity
    status: AlertStatus
    event: SecurityEventOut
    timestamp: str
    acknowledged_at: Optional[str] = None
    acknowledged_by: Optional[str] = None
    dismissed_at: Optional[str] = None
    dismissed_by: Optional[str] = None
    dispatched_at: Optional[str] = None
    deliveries: List[ChannelDeliveryOut] = Field(default_factory=list)

    @classmethod
    def from_alert(cls, alert: Alert) -> "AlertOut":
        return cls.model_validate(alert.to_dict())


class EventAcceptedResponse(BaseModel):
    success: bool = True
    message: str
    event: SecurityEventOut
    alerts: List[AlertOut] = Field(default_factory=list)


class AlertListResponse(BaseModel):
    success: bool = True
    count: int = Field(..., ge=0)
    alerts: List[AlertOut]


class AlertResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    alert: AlertOut


class AlertActionRequest(BaseModel):
    actor: Optional[str] = Field(default=None, max_length=255)


class TestNotificationRequest(BaseModel):
    channel: Optional[str] = None
    config: Optional[Dict[str, Any]] = None


class TestNotificationResponse(BaseModel):
    success: bool = True
    message: str


class RecentAlert(BaseModel):
    id: str
    rule_name: str
    severity: Severity
    timestamp: str


class AlertStats(BaseModel):
    total_alerts: int = Field(..., ge=0)
    by_severity: Dict[str, int]
    by_status: Dict[str, int]
    recent: List[RecentAlert]


class StatsResponse(BaseModel):
    success: bool = True
    stats: AlertStats


class HealthResponse(BaseModel):
    status: str
    rules: int = Field(..., ge=0)
    pending_dispatches: int = Field(..., ge=0)
