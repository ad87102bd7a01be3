# rerank_service/main.py
from fastapi import FastAPI, Request, status as fastapi_status
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Dict, Optional, Type
import structlog
import uvicorn
import asyncio
import uuid

from rerank_service.core.config import settings, IS_CUDA_AVAILABLE
from rerank_service.core.logging_config import setup_logging

setup_logging()
logger = structlog.get_logger("rerank_service.main")

from rerank_service.api.v1.endpoints import rerank_endpoint
from rerank_service.api.v1.schemas import ErrorResponse, HealthCheckResponse
from rerank_service.application.ports.ranker_model_port import RankerModelPort
from rerank_service.application.services.ranking_invoker import RankingInvoker
from rerank_service.application.use_cases.rank_documents_use_case import RankDocumentsUseCase
from rerank_service.dependencies import get_ranker_model, is_service_ready, set_dependencies
from rerank_service.domain.exceptions import (
    InvalidTopN, MalformedRequest, RankerNotReady, RerankServiceError, ScoringFailure, UnsupportedDocumentType
)
from rerank_service.infrastructure.rankers.cross_encoder_adapter import CrossEncoderRankerAdapter

SERVICE_VERSION = "0.1.0"

ERROR_STATUS_CODES: Dict[Type[RerankServiceError], int] = {
    MalformedRequest: 422,
    UnsupportedDocumentType: 422,
    InvalidTopN: 422,
    ScoringFailure: fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
    RankerNotReady: fastapi_status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _error_response(status_code: int, error: str, message: str, error_type: str) -> JSONResponse:
    body = ErrorResponse(error=error, message=message, type=error_type)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _status_code_for(exc: RerankServiceError) -> int:
    for error_cls in type(exc).__mro__:
        if error_cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[error_cls]
    return fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR


def _unexpected_error_response(exc: Exception) -> JSONResponse:
    return _error_response(
        fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        str(exc) or "An unexpected internal server error occurred.",
        type(exc).__name__
    )


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        parts.append(f"{location or 'body'}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts) or "Request body could not be parsed."


def create_app(ranker_model: Optional[RankerModelPort] = None) -> FastAPI:
    """
    Builds the FastAPI application.

    `ranker_model` lets callers hand in an already constructed model handle;
    by default a CrossEncoderRankerAdapter for the configured variant is
    created and loaded during the lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"{settings.PROJECT_NAME} service starting up...",
            version=SERVICE_VERSION,
            port=settings.PORT,
            log_level=settings.LOG_LEVEL,
            configured_model_variant=settings.MODEL_VARIANT,
            configured_model_name=settings.MODEL_NAME,
            cuda_available_on_host=IS_CUDA_AVAILABLE,
            effective_model_device=settings.MODEL_DEVICE,
            effective_gunicorn_workers=settings.WORKERS,
            effective_batch_size=settings.BATCH_SIZE,
            rank_timeout_seconds=settings.RANK_TIMEOUT_SECONDS
        )

        model_adapter_instance = ranker_model or CrossEncoderRankerAdapter()
        service_ready = False
        rank_use_case_instance: Optional[RankDocumentsUseCase] = None

        try:
            if not model_adapter_instance.is_ready():
                await asyncio.to_thread(model_adapter_instance.load_model)

            ranking_invoker = RankingInvoker(
                ranker_model=model_adapter_instance,
                timeout_seconds=settings.RANK_TIMEOUT_SECONDS
            )
            rank_use_case_instance = RankDocumentsUseCase(ranking_invoker=ranking_invoker)

            if model_adapter_instance.is_ready():
                logger.info(
                    "Ranking model adapter initialized and model loaded successfully.",
                    loaded_model_name=model_adapter_instance.get_model_name()
                )
                service_ready = True
                logger.info(f"{settings.PROJECT_NAME} is ready to serve requests.")
            else:
                logger.error(
                    "Ranking model failed to load during startup. Service will be unhealthy.",
                    configured_model_name=model_adapter_instance.get_model_name()
                )
        except Exception as e:
            logger.critical(
                "Critical error during ranking model initialization or loading in lifespan.",
                error_message=str(e),
                exc_info=True
            )

        set_dependencies(
            app,
            ranker_model=model_adapter_instance,
            use_case=rank_use_case_instance,
            service_ready=service_ready
        )

        yield
        logger.info(f"{settings.PROJECT_NAME} service shutting down...")
        logger.info(f"{settings.PROJECT_NAME} has been shut down.")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=SERVICE_VERSION,
        description="Cohere-compatible rerank microservice: ranks documents by relevance to a query using a CrossEncoder model.",
        lifespan=lifespan,
        openapi_url=f"{settings.API_V1_STR}/openapi.json",
        docs_url=f"{settings.API_V1_STR}/docs",
        redoc_url=f"{settings.API_V1_STR}/redoc"
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        structlog.contextvars.clear_contextvars()
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start_time = asyncio.get_running_loop().time()

        response = None
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception("Unhandled exception during request processing by middleware.")
            response = _unexpected_error_response(e)
        finally:
            process_time_ms = (asyncio.get_running_loop().time() - start_time) * 1000
            status_code_for_log = response.status_code if response else 500

            is_health_check = request.url.path == "/health"

            log_method = logger.info
            if is_health_check and status_code_for_log == 200:
                log_method = logger.debug
            elif status_code_for_log >= 500:
                log_method = logger.error
            elif status_code_for_log >= 400:
                log_method = logger.warning

            log_method(
                "Request finished",
                http_method=request.method,
                http_path=str(request.url.path),
                http_status_code=status_code_for_log,
                http_duration_ms=round(process_time_ms, 2),
                client_host=request.client.host if request.client else "unknown_client"
            )

            if response:
                response.headers["X-Request-ID"] = request_id
                response.headers["X-Process-Time-Ms"] = f"{process_time_ms:.2f}"

            structlog.contextvars.clear_contextvars()
        return response

    @app.exception_handler(RerankServiceError)
    async def rerank_service_exception_handler(request: Request, exc: RerankServiceError):
        status_code = _status_code_for(exc)
        if status_code >= 500:
            logger.error(
                "Rerank request aborted.",
                error_type=type(exc).__name__,
                error_message=exc.message,
                exc_info=True
            )
        return _error_response(status_code, exc.error_title, exc.message, type(exc).__name__)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler_custom(request: Request, exc: RequestValidationError):
        return _error_response(
            422,
            MalformedRequest.error_title,
            _format_validation_errors(exc),
            MalformedRequest.__name__
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler_custom(request: Request, exc: StarletteHTTPException):
        return _error_response(exc.status_code, "HTTP error", str(exc.detail), type(exc).__name__)

    @app.exception_handler(Exception)
    async def generic_exception_handler_custom(request: Request, exc: Exception):
        return _unexpected_error_response(exc)

    # Same handler under both paths: /v1/rerank and the unversioned /rerank.
    app.include_router(rerank_endpoint.router, prefix=settings.API_V1_STR, tags=["Reranking Operations"])
    app.include_router(rerank_endpoint.router, tags=["Reranking Operations"])
    logger.debug("API routers included.", prefixes=[settings.API_V1_STR, ""])

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["Health"],
        summary="Service Health and Model Status Check"
    )
    async def health_check(request: Request):
        service_ready = is_service_ready(request)
        model_adapter = get_ranker_model(request)
        model_status = model_adapter.get_model_status() if model_adapter else "unloaded"
        current_model_name = model_adapter.get_model_name() if model_adapter else settings.MODEL_NAME

        if service_ready and model_status == "loaded":
            return HealthCheckResponse(
                status="ok",
                service=settings.PROJECT_NAME,
                model_status=model_status,
                model_name=current_model_name
            )

        if not service_ready:
            unhealthy_reason = "Lifespan initialization incomplete or failed."
        else:
            unhealthy_reason = f"Model status is '{model_status}' (expected 'loaded')."

        logger.warning("Health check: FAILED", reason=unhealthy_reason, model_actual_status=model_status)
        return JSONResponse(
            status_code=fastapi_status.HTTP_503_SERVICE_UNAVAILABLE,
            content=HealthCheckResponse(
                status="error",
                service=settings.PROJECT_NAME,
                model_status=model_status,
                model_name=current_model_name,
                message=f"Service is not ready. {unhealthy_reason}"
            ).model_dump()
        )

    @app.get("/", include_in_schema=False)
    async def root_redirect():
        return PlainTextResponse(
            f"{settings.PROJECT_NAME} is running. See {settings.API_V1_STR}/docs for API documentation."
        )

    return app


app = create_app()


if __name__ == "__main__":
    logger.info(f"Starting {settings.PROJECT_NAME} locally with Uvicorn (direct run)...")
    uvicorn.run(
        "rerank_service.main:app",
        host="0.0.0.0",
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        reload=True
    )
