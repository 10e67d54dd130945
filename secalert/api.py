from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from http import HTTPStatus
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

import yaml
from fastapi import APIRouter, FastAPI, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from secalert.lib.alerts import (
    AlertEngine,
    AlertStatus,
    ChannelSendError,
    NotFoundError,
    Severity,
    ValidationError,
)
from secalert.lib.schemas import (
    AlertActionRequest,
    AlertListResponse,
    AlertOut,
    AlertResponse,
    EventAcceptedResponse,
    EventIn,
    HealthResponse,
    SecurityEventOut,
    StatsResponse,
    TestNotificationRequest,
    TestNotificationResponse,
)
from secalert.lib.setup import initialize_environment


PROJECT_ROOT = Path(__file__).resolve().parent
_config_override = os.getenv("SECALERT_CONFIG")
CONFIG_PATH = Path(_config_override) if _config_override else PROJECT_ROOT / "config.yaml"

logger = logging.getLogger("secalert.api")
debug_logger = logging.getLogger("secalert.debug.api")


_ERROR_CODE_MAP = {
    status.HTTP_400_BAD_REQUEST: "bad_request",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_409_CONFLICT: "conflict",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "validation_error",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "server_error",
    status.HTTP_502_BAD_GATEWAY: "delivery_failed",
    status.HTTP_503_SERVICE_UNAVAILABLE: "unavailable",
}


def _status_to_error_code(status_code: int) -> str:
    return _ERROR_CODE_MAP.get(status_code, f"http_{status_code}")


def _build_error_payload(status_code: int, detail: Any) -> Dict[str, Any]:
    code = _status_to_error_code(status_code)
    message: Optional[str] = None
    extra: Optional[Any] = None

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = detail.get("message") or detail.get("detail")
        remaining = {k: v for k, v in detail.items() if k not in {"code", "message", "detail"}}
        if remaining:
            extra = remaining
    elif isinstance(detail, list):
        extra = detail
    elif detail:
        message = str(detail)

    if message is None:
        try:
            message = HTTPStatus(status_code).phrase
        except ValueError:
            message = "Request failed"

    payload: Dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        }
    }
    if extra is not None:
        payload["error"]["details"] = extra
    return payload


def _error_response(status_code: int, detail: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=_build_error_payload(status_code, detail))


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(exc.status_code, exc.detail)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [{key: value for key, value in error.items() if key != "ctx"} for error in exc.errors()]
    detail = {
        "code": "validation_error",
        "message": "Request validation failed",
        "fields": jsonable_encoder(fields),
    }
    return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, detail)


async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc))


async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error_response(
        status.HTTP_404_NOT_FOUND,
        {"message": "Alert not found", "alert_id": exc.alert_id},
    )


async def _channel_error_handler(request: Request, exc: ChannelSendError) -> JSONResponse:
    return _error_response(
        status.HTTP_502_BAD_GATEWAY,
        {"message": str(exc), "channel": exc.channel},
    )


def _ensure_engine(request: Request) -> AlertEngine:
    engine: Optional[AlertEngine] = getattr(request.app.state, "alert_engine", None)
    if engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application not initialized",
        )
    return engine


router = APIRouter(prefix="/api")


@router.post("/events", response_model=EventAcceptedResponse)
async def submit_event(
    request: Request,
    payload: EventIn,
    wait: bool = Query(False, description="Wait for notification dispatch before responding"),
) -> EventAcceptedResponse:
    engine = _ensure_engine(request)
    submission = await engine.submit_event(payload.model_dump())
    alerts = await submission.wait() if wait else submission.alerts
    debug_logger.debug(
        "api.event_submitted",
        extra={"event_type": submission.event.type, "alerts": len(submission.alerts), "wait": wait},
    )
    message = "Event received and processing" if submission.matched else "Event received; no matching rules"
    return EventAcceptedResponse(
        message=message,
        event=SecurityEventOut.model_validate(submission.event.to_dict()),
        alerts=[AlertOut.from_alert(alert) for alert in alerts],
    )


@router.get("/alerts", response_model=AlertListResponse)
async def list_alerts(
    request: Request,
    severity: Optional[Severity] = Query(None),
    status_filter: Optional[AlertStatus] = Query(None, alias="status"),
    limit: Optional[int] = Query(None, ge=1, le=1000),
) -> AlertListResponse:
    engine = _ensure_engine(request)
    alerts = engine.list_alerts(severity=severity, status=status_filter, limit=limit)
    return AlertListResponse(count=len(alerts), alerts=[AlertOut.from_alert(alert) for alert in alerts])


@router.get("/alerts/{alert_id}", response_model=AlertResponse)
async def get_alert(request: Request, alert_id: str) -> AlertResponse:
    engine = _ensure_engine(request)
    return AlertResponse(alert=AlertOut.from_alert(engine.get_alert(alert_id)))


@router.post("/alerts/{alert_id}/acknowledge", response_model=AlertResponse)
async def acknowledge_alert(
    request: Request,
    alert_id: str,
    payload: Optional[AlertActionRequest] = None,
) -> AlertResponse:
    engine = _ensure_engine(request)
    alert = engine.acknowledge(alert_id, actor=payload.actor if payload else None)
    return AlertResponse(message="Alert acknowledged", alert=AlertOut.from_alert(alert))


@router.post("/alerts/{alert_id}/dismiss", response_model=AlertResponse)
async def dismiss_alert(
    request: Request,
    alert_id: str,
    payload: Optional[AlertActionRequest] = None,
) -> AlertResponse:
    engine = _ensure_engine(request)
    alert = engine.dismiss(alert_id, actor=payload.actor if payload else None)
    return AlertResponse(message="Alert dismissed", alert=AlertOut.from_alert(alert))


@router.post("/notifications/test", response_model=TestNotificationResponse)
async def test_notification(request: Request, payload: TestNotificationRequest) -> TestNotificationResponse:
    engine = _ensure_engine(request)
    if not payload.channel or payload.config is None:
        raise ValidationError("Missing required fields: channel, config")
    await engine.dispatcher.send_test(payload.channel, payload.config)
    logger.info("Test notification sent via %s", payload.channel)
    return TestNotificationResponse(message=f"Test notification sent via {payload.channel}")


@router.get("/stats", response_model=StatsResponse)
async def get_stats(request: Request) -> StatsResponse:
    engine = _ensure_engine(request)
    return StatsResponse.model_validate({"stats": engine.stats()})


def _load_engine(config_path: Path) -> AlertEngine:
    config_data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    _app_config, engine = initialize_environment(config_data, base_dir=config_path.resolve().parent)
    return engine


def create_app(
    *,
    engine: Optional[AlertEngine] = None,
    config_path: Optional[Path] = None,
) -> FastAPI:
    """Build the API; ``engine`` skips config loading (used by tests and embedding)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        alert_engine = engine or _load_engine(config_path or CONFIG_PATH)
        app.state.alert_engine = alert_engine
        try:
            yield
        finally:
            await alert_engine.close()
            app.state.alert_engine = None

    app = FastAPI(title="SecAlert API", version="1.0.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(HTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(ValidationError, _validation_error_handler)
    app.add_exception_handler(NotFoundError, _not_found_handler)
    app.add_exception_handler(ChannelSendError, _channel_error_handler)
    app.include_router(router)

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        alert_engine = _ensure_engine(request)
        return HealthResponse(
            status="ok",
            rules=len(alert_engine.rules),
            pending_dispatches=alert_engine.pending_dispatches,
        )

    return app


app = create_app()
