"""ASGI application for Slipscan."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Optional
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from slipscan import __version__, metrics
from slipscan.config import Settings, get_settings
from slipscan.logging_utils import configure_logging as configure_app_logging
from slipscan.models.receipt import ReceiptData, ScanRequest
from slipscan.ocr import EncodingError, OCRFailure, ProviderErrorKind, ReceiptOcrService
from slipscan.server import deps

logger = logging.getLogger(__name__)


def _json_safe(value: Any) -> Any:
    """Convert non-serializable values into JSON-safe representations."""

    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return value.hex()
    if isinstance(value, (list, tuple)):
        return [_json_safe(entry) for entry in value]
    if isinstance(value, dict):
        return {key: _json_safe(sub_value) for key, sub_value in value.items()}
    return repr(value)


def _configure_logging(settings: Settings) -> None:
    configure_app_logging(settings.log_level, settings.log_format, settings.secrets())


def _failure_status(exc: OCRFailure) -> int:
    if exc.errors and exc.kinds == {ProviderErrorKind.QUOTA_EXCEEDED}:
        return status.HTTP_429_TOO_MANY_REQUESTS
    return status.HTTP_503_SERVICE_UNAVAILABLE


def create_app() -> FastAPI:
    """Create and configure a FastAPI application instance."""

    settings = get_settings()
    _configure_logging(settings)

    application = FastAPI(title="Slipscan Receipt OCR", version=__version__)
    logger.debug("Application created with log level %s", settings.log_level)

    if settings.log_requests:
        access_logger = logging.getLogger("slipscan.access")

        @application.middleware("http")
        async def log_request_response(request: Request, call_next):
            """Log request/response details without leaking sensitive data."""

            request_id = request.headers.get("X-Request-ID") or uuid4().hex
            request.state.request_id = request_id
            start = perf_counter()
            path = request.url.path
            method = request.method
            try:
                response: Response = await call_next(request)
            except Exception:
                duration_ms = (perf_counter() - start) * 1000
                access_logger.exception(
                    "HTTP %s %s status=500 duration_ms=%.2f",
                    method,
                    path,
                    duration_ms,
                    extra={"request_id": request_id},
                )
                metrics.REQUEST_COUNT.labels(method=method, path=path, status="500").inc()
                metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(
                    duration_ms / 1000.0
                )
                raise

            duration_ms = (perf_counter() - start) * 1000
            response.headers.setdefault("X-Request-ID", request_id)
            access_logger.info(
                "HTTP %s %s status=%s duration_ms=%.2f",
                method,
                path,
                response.status_code,
                duration_ms,
                extra={"request_id": request_id},
            )
            metrics.REQUEST_COUNT.labels(
                method=method,
                path=path,
                status=str(response.status_code),
            ).inc()
            metrics.REQUEST_LATENCY.labels(method=method, path=path).observe(duration_ms / 1000.0)
            return response

    @application.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        log_kwargs: dict[str, Any] = {}
        request_id = getattr(request.state, "request_id", None)
        if request_id:
            log_kwargs["extra"] = {"request_id": request_id}

        logger.warning(
            "Validation error on %s %s: %s",
            request.method,
            request.url.path,
            exc.errors(),
            **log_kwargs,
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": [_json_safe(error) for error in exc.errors()]},
        )

    @application.exception_handler(OCRFailure)
    async def ocr_failure_handler(request: Request, exc: OCRFailure):
        payload = exc.as_dict()
        return JSONResponse(
            status_code=_failure_status(exc),
            content={
                "detail": payload["detail"],
                "providers": payload["providers"],
                "remediation": payload["remediation"],
            },
        )

    @application.post(
        "/receipts/scan",
        response_model=ReceiptData,
        summary="Run OCR on an uploaded receipt image",
    )
    async def receipts_scan(
        file: UploadFile = File(...),
        currency: Optional[str] = Form(default=None, min_length=3, max_length=3),
        service: ReceiptOcrService = Depends(deps.get_receipt_service),
    ) -> ReceiptData:
        content = await file.read()
        if not content:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty."
            )
        if len(content) > settings.max_upload_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"Receipt exceeds {settings.max_upload_bytes // (1024 * 1024)} MiB limit.",
            )
        logger.debug(
            "Scanning receipt filename=%s size=%s", file.filename or "receipt", len(content)
        )
        try:
            return await run_in_threadpool(service.process_bytes, content, currency)
        except EncodingError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc

    @application.post(
        "/receipts/parse",
        response_model=ReceiptData,
        summary="Parse OCR text captured elsewhere",
    )
    def receipts_parse(
        payload: ScanRequest,
        service: ReceiptOcrService = Depends(deps.get_receipt_service),
    ) -> ReceiptData:
        try:
            return service.parse_text(payload.text, payload.currency)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc

    @application.get("/healthz", summary="Liveness probe")
    def healthz() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @application.get("/metrics", include_in_schema=False)
    def metrics_endpoint() -> Response:
        payload = generate_latest()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    return application


app = create_app()

__all__ = ["app", "create_app"]
