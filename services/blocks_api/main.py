"""FastAPI entrypoint for the Blocks API."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from blocks_shared.metrics import record_perf_markers
from blocks_shared.models import RecommendationStatus, RiskLevel

from .connection import check_connection, setup_tenant
from .context import RequestContext, build_context
from .cost_client import get_fact_source
from .errors import BlocksError, ErrorCode, InternalError, NotFoundError, ValidationError, error_envelope
from .exports import render_export
from .facts import FactSource
from .generator import default_generator
from .handler import build_response
from .logging_utils import configure_logging
from .perf import marker_category, summarize_markers, threshold_breaches
from .schemas import (
    AssistantResponse,
    ConnectionTestRequest,
    PerfBatch,
    QueryRequest,
    TenantSetupRequest,
    TimelinesResponse,
)
from .settings import get_settings
from .spend import projection, spend_series
from .streaming import EVENT_STREAM, SSE_HEADERS, sse_events, wants_event_stream

logger = logging.getLogger("uvicorn.error")

REQUEST_ID_HEADER = "X-Request-ID"
TENANT_HEADER = "X-Tenant-ID"
DATE_HEADER = "X-Blocks-Date"
MOCK_DISCLAIMER = "Illustrative data generated for this tenant and day; not real billing figures."


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def _field_from_loc(loc: Any) -> str:
    parts = [str(part) for part in (loc or ()) if part not in ("body", "query", "header", "path")]
    return ".".join(parts) or "body"


def request_context(request: Request) -> RequestContext:
    return build_context(
        request_id=_request_id(request),
        tenant_id=request.headers.get(TENANT_HEADER),
        default_tenant_id=get_settings().default_tenant_id,
        day_header=request.headers.get(DATE_HEADER),
    )


def _error_response(error: BlocksError, request: Request) -> JSONResponse:
    request_id = _request_id(request)
    headers = {REQUEST_ID_HEADER: request_id} if request_id else None
    return JSONResponse(status_code=error.status_code, content=error_envelope(error, request_id), headers=headers)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)
    app = FastAPI(title=settings.app_name)
    Instrumentator().instrument(app).expose(app)

    if settings.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=[REQUEST_ID_HEADER],
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)
        response.headers[REQUEST_ID_HEADER] = request_id
        if response.status_code >= 500:
            level = logging.ERROR
        elif response.status_code >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(
            level,
            "method=%s path=%s status=%d duration_ms=%.1f rid=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
            extra={
                "request_id": request_id,
                "tenant_id": request.headers.get(TENANT_HEADER) or get_settings().default_tenant_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "duration_ms": duration_ms,
            },
        )
        return response

    @app.exception_handler(BlocksError)
    async def blocks_error_handler(request: Request, exc: BlocksError):
        if exc.status_code >= 500:
            logger.error(
                "%s: %s",
                type(exc).__name__,
                exc.message,
                extra={"request_id": _request_id(request), "error_code": exc.code.value},
            )
        return _error_response(exc, request)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = _field_from_loc(first.get("loc"))
        message = f"Validation failed for field '{field}': {first.get('msg', 'invalid value')}"
        return _error_response(ValidationError(message, hint=f"Invalid field: {field}"), request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error_response(NotFoundError(f"No route for {request.method} {request.url.path}"), request)
        if exc.status_code == 405:
            return _error_response(ValidationError(f"Method {request.method} not allowed"), request)
        return _error_response(InternalError(str(exc.detail)), request)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request), "error_code": ErrorCode.INTERNAL_ERROR.value},
        )
        return _error_response(InternalError("Unhandled error"), request)

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/assistant/query", response_model=AssistantResponse)
    async def assistant_query(
        body: QueryRequest,
        request: Request,
        ctx: RequestContext = Depends(request_context),
        fact_source: FactSource = Depends(get_fact_source),
    ):
        stream = body.stream and wants_event_stream(request.headers.get("accept"))
        result = await build_response(
            body.prompt,
            ctx,
            conversation_id=body.conversation_id,
            context=body.context,
            fact_source=fact_source,
            streamed=stream,
        )
        if stream:
            return StreamingResponse(
                sse_events(result, settings.stream_chunk_chars),
                media_type=EVENT_STREAM,
                headers=SSE_HEADERS,
            )
        return result

    @app.get("/recommendations")
    async def recommendations(
        ctx: RequestContext = Depends(request_context),
        account_scope: Optional[str] = Query(default=None, alias="accountScope", max_length=64),
        category: Optional[str] = Query(default=None, max_length=64),
        min_savings: Optional[int] = Query(default=None, alias="minSavings", ge=0),
        risk_level: Optional[RiskLevel] = Query(default=None, alias="riskLevel"),
        status: Optional[RecommendationStatus] = Query(default=None),
    ) -> Dict[str, Any]:
        stubs = default_generator().generate(ctx.tenant_id, ctx.day).recommendations
        if category:
            stubs = tuple(stub for stub in stubs if (stub.category or "").lower() == category.strip().lower())
        if min_savings is not None:
            stubs = tuple(stub for stub in stubs if stub.estimated_monthly_savings_minor >= min_savings)
        if risk_level is not None:
            stubs = tuple(stub for stub in stubs if stub.risk_level is risk_level)
        if status is not None:
            stubs = tuple(stub for stub in stubs if stub.status is status)
        return {
            "recommendations": [stub.to_wire() | {"cta": stub.cta.value} for stub in stubs],
            "totalPotentialSavingsMinor": sum(stub.estimated_monthly_savings_minor for stub in stubs),
            "meta": {
                "tenantId": ctx.tenant_id,
                "day": ctx.day.isoformat(),
                "accountScope": account_scope or "all",
                "count": len(stubs),
                "currency": settings.currency,
                "mock": True,
                "disclaimer": MOCK_DISCLAIMER,
            },
        }

    @app.get("/timelines", response_model=TimelinesResponse)
    async def timelines(ctx: RequestContext = Depends(request_context)) -> TimelinesResponse:
        blocks = default_generator().generate(ctx.tenant_id, ctx.day).timelines
        return TimelinesResponse(blocks=list(blocks))

    @app.get("/spend")
    async def spend(
        ctx: RequestContext = Depends(request_context),
        time_range: str = Query(default="month", alias="timeRange"),
        granularity: str = Query(default="day"),
        service: Optional[str] = Query(default=None, max_length=64),
    ) -> Dict[str, Any]:
        return spend_series(ctx, time_range, granularity, service, currency=settings.currency)

    @app.get("/projection")
    async def spend_projection(
        ctx: RequestContext = Depends(request_context),
        period: str = Query(default="month"),
    ) -> Dict[str, Any]:
        return projection(ctx, period)

    @app.get("/export")
    async def export(
        ctx: RequestContext = Depends(request_context),
        kind: str = Query(default="full", alias="type"),
    ) -> Response:
        content = default_generator().generate(ctx.tenant_id, ctx.day)
        filename, body = render_export(
            kind,
            ctx.day,
            spend=spend_series(ctx, "month", currency=settings.currency),
            recommendations=content.recommendations,
            currency=settings.currency,
        )
        return Response(
            content=body,
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{filename}"',
                "Cache-Control": "no-cache",
            },
        )

    @app.post("/connection/test")
    async def connection_test(body: ConnectionTestRequest, request: Request) -> Dict[str, Any]:
        result = check_connection(body.role_arn, body.external_id)
        logger.info(
            "Connection test completed (isValid=%s)",
            result["validation"]["isValid"],
            extra={"request_id": _request_id(request)},
        )
        return result

    @app.post("/tenant/setup")
    async def tenant_setup(body: TenantSetupRequest, request: Request) -> Dict[str, Any]:
        result = setup_tenant(body.name, body.role_arn, body.external_id)
        logger.info(
            "Tenant setup completed (mock) status=%s",
            result["connectionStatus"],
            extra={"request_id": _request_id(request), "tenant_id": result["tenantId"]},
        )
        return result

    @app.post("/perf/collect")
    async def perf_collect(batch: PerfBatch, request: Request) -> Dict[str, Any]:
        session_id = batch.session_id or str(uuid.uuid4())
        extra = {"request_id": _request_id(request)}
        stats = summarize_markers(batch.markers)
        logger.info("Performance metrics summary session=%s stats=%s", session_id, stats, extra=extra)
        for breach in threshold_breaches(batch.markers):
            logger.warning(
                "Performance threshold exceeded: %s value=%s threshold=%s url=%s",
                breach["vital"],
                breach["value"],
                breach["threshold"],
                breach["url"],
                extra=extra,
            )
        record_perf_markers(marker_category(marker.name) for marker in batch.markers)
        return {"success": True, "processed": len(batch.markers), "sessionId": session_id}

    return app


app = create_app()
