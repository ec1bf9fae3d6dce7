import os
import time
from contextlib import asynccontextmanager

import structlog

from .broker import RequestBroker
from .config import RouterConfig
from .envelopes import (
    ErrorEnvelope,
    InteractiveResponse,
    error_text,
    make_interactive_response,
    make_success_envelope,
)
from .errors import RouterError
from .http_security import install_middlewares
from .logging import configure_logging
from .metrics import maybe_start_metrics, server_errors_total, server_requests_total

log = structlog.get_logger()

SMOKE_TEST_PROMPT = "Write a simple JavaScript function to add two numbers"
CODESTRAL_TEST_PROMPT = "Write a Python function to calculate factorial"

CODESTRAL_TEST_CONFIG = {"endpoint": "fim", "temperature": 0.3, "max_tokens": 500}
AUTO_TEST_CONFIG = {"temperature": 0.7, "max_tokens": 500}


def create_app(cfg: RouterConfig | None = None, broker: RequestBroker | None = None):
    try:
        from fastapi import FastAPI, Request
        from fastapi.responses import JSONResponse
    except ImportError as e:  # pragma: no cover
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    cfg = cfg or RouterConfig()
    configure_logging(level=cfg.log_level, fmt=cfg.log_format, secrets=cfg.secrets())
    broker = broker or RequestBroker(cfg)
    timeout = max(0.0, float(cfg.request_timeout_seconds or 0)) or None

    def _observe(path: str, status_code: int) -> None:
        server_requests_total.labels(path=path, status=str(status_code)).inc()

    def _log_failure(path: str, exc: Exception) -> None:
        if isinstance(exc, RouterError):
            log.error("test_route_failed", path=path, error_type=type(exc).__name__, error=str(exc))
        else:
            log.exception("test_route_crashed", path=path, error_type=type(exc).__name__)

    def _failure(path: str, message: str, exc: Exception) -> JSONResponse:
        server_errors_total.labels(type=type(exc).__name__).inc()
        _log_failure(path, exc)
        _observe(path, 500)
        return JSONResponse(
            status_code=500,
            content=ErrorEnvelope(message=message, error=error_text(exc)).model_dump(),
        )

    async def _form_value(request: Request, name: str) -> str | None:
        form = await request.form()
        value = form.get(name)
        return value if isinstance(value, str) else None

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        maybe_start_metrics(enable=cfg.enable_metrics, bind=cfg.metrics_bind, port=cfg.metrics_port)
        try:
            yield
        finally:
            await broker.close()

    app = FastAPI(
        title="mistral-ai-router",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if cfg.enable_api_docs else None,
        redoc_url="/redoc" if cfg.enable_api_docs else None,
        openapi_url="/openapi.json" if cfg.enable_api_docs else None,
    )
    install_middlewares(app, cfg=cfg)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/test")
    async def api_test_auto():
        started_at = time.monotonic()
        try:
            result = await broker.route(SMOKE_TEST_PROMPT, {"max_tokens": 200, "temperature": 0.2}, timeout=timeout)
        except Exception as exc:
            return _failure("/api/test", "AI Router Test Failed", exc)

        log.info(
            "test_route_ok",
            path="/api/test",
            provider=result.provider.value,
            elapsed=round(time.monotonic() - started_at, 3),
        )
        _observe("/api/test", 200)
        return make_success_envelope(
            message="AI Router Test Complete",
            test="Auto-detection routing",
            result=result,
            truncate=True,
        ).model_dump()

    @app.post("/api/test")
    async def api_test_codestral(request: Request):
        prompt = await _form_value(request, "prompt") or CODESTRAL_TEST_PROMPT
        log.info("test_route_codestral", prompt_chars=len(prompt))
        try:
            result = await broker.call_codestral(prompt, CODESTRAL_TEST_CONFIG, timeout=timeout)
        except Exception as exc:
            return _failure("/api/test", "Explicit Codestral Test Failed", exc)

        _observe("/api/test", 200)
        return make_success_envelope(
            message="Explicit Codestral Test Complete",
            test="Direct Codestral call",
            result=result,
        ).model_dump()

    @app.get("/test")
    async def test_page() -> dict[str, str]:
        return {"message": "AI Integration Test Page"}

    @app.post("/test")
    async def test_page_submit(request: Request):
        prompt = await _form_value(request, "prompt") or ""
        test_type = await _form_value(request, "testType")
        try:
            if test_type == "codestral":
                result = await broker.call_codestral(prompt, CODESTRAL_TEST_CONFIG, timeout=timeout)
            else:
                result = await broker.route(prompt, AUTO_TEST_CONFIG, timeout=timeout)
        except Exception as exc:
            server_errors_total.labels(type=type(exc).__name__).inc()
            _log_failure("/test", exc)
            _observe("/test", 200)
            return InteractiveResponse(success=False, error=error_text(exc)).model_dump(exclude_none=True)

        _observe("/test", 200)
        return make_interactive_response(result).model_dump(exclude_none=True)

    return app


def main() -> None:  # pragma: no cover
    try:
        import uvicorn
    except ImportError as e:
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run("mistral_router.server:create_app", factory=True, host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    main()
