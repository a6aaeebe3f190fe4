import asyncio
from datetime import datetime, timezone
import logging
import time
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from nexus_hr.db import engine
from nexus_hr.errors import ApiError, error_response, install_exception_handlers
from nexus_hr.logging_utils import request_id_var, setup_json_logging
from nexus_hr.rate_limit import RequestRateLimiter
from nexus_hr.routers import assets, attendance, audit, auth, documents, employees, leave, onboarding, payroll, performance
from nexus_hr.services.schema_guard import SchemaGuardResult, verify_runtime_schema
from nexus_hr.settings import get_cors_origins, get_settings

settings = get_settings()
setup_json_logging(settings.log_level)
logger = logging.getLogger("nexus_hr.request")
startup_logger = logging.getLogger("nexus_hr.startup")

app = FastAPI(title=settings.app_name, version="1.0.0")
app.state.rate_limiter = RequestRateLimiter(
    max_requests=settings.rate_limit_max_requests,
    window_seconds=settings.rate_limit_window_seconds,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    request.state.request_id = request_id
    context_token = request_id_var.set(request_id)
    request.state.actor = getattr(request.state, "actor", "anonymous")
    request.state.actor_id = getattr(request.state, "actor_id", None)

    start = time.perf_counter()
    status_code = 500
    try:
        if settings.rate_limit_enabled:
            try:
                app.state.rate_limiter.check(request)
            except ApiError as exc:
                # exception handlers do not run for errors raised in middleware
                response = error_response(request, status_code=exc.status_code, code=exc.code, message=exc.message)
            else:
                response = await call_next(request)
        else:
            response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        latency_ms = round((time.perf_counter() - start) * 1000, 2)
        logger.info(
            "request_complete",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": status_code,
                "latency_ms": latency_ms,
                "actor": getattr(request.state, "actor", "anonymous"),
                "actor_id": getattr(request.state, "actor_id", None),
                "employee_id": getattr(request.state, "employee_id", None),
            },
        )
        request_id_var.reset(context_token)


install_exception_handlers(app)

app.include_router(auth.router)
app.include_router(employees.router)
app.include_router(attendance.router)
app.include_router(leave.router)
app.include_router(payroll.router)
app.include_router(documents.router)
app.include_router(assets.router)
app.include_router(performance.router)
app.include_router(onboarding.router)
app.include_router(audit.router)


def _default_schema_guard_result() -> SchemaGuardResult:
    return SchemaGuardResult(
        ok=False,
        checked_at_utc=datetime.now(timezone.utc),
        issues=["SCHEMA_GUARD_NOT_RUN"],
        warnings=[],
    )


@app.on_event("startup")
async def run_schema_guard() -> None:
    result = await asyncio.to_thread(verify_runtime_schema, engine)
    app.state.schema_guard_result = result
    if result.ok:
        startup_logger.info("schema_guard_ok", extra=result.to_dict())
        return

    startup_logger.error("schema_guard_failed", extra=result.to_dict())
    if settings.schema_guard_strict:
        joined_issues = "; ".join(result.issues)
        raise RuntimeError(f"Runtime schema guard failed: {joined_issues}")


@app.get("/health")
def health() -> dict[str, Any]:
    schema_guard_result: SchemaGuardResult = getattr(app.state, "schema_guard_result", _default_schema_guard_result())
    return {
        "status": "ok",
        "message": f"{settings.app_name} is running",
        "schemaGuard": schema_guard_result.to_dict(),
    }
