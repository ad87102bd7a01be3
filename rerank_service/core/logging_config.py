# rerank_service/core/logging_config.py
import logging
import sys
import structlog

from rerank_service.core.config import settings

# Third-party loggers and the minimum level they are allowed to emit at.
_NOISY_LOGGERS = {
    "uvicorn": logging.WARNING,
    "uvicorn.access": logging.ERROR,
    "gunicorn.error": logging.INFO,
    "httpx": logging.WARNING,
    "sentence_transformers": logging.WARNING,
    "transformers": logging.WARNING,
    "transformers.modeling_utils": logging.ERROR,
    "torch": logging.WARNING,
}


def _build_shared_processors(log_level_int: int) -> list:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if log_level_int <= logging.DEBUG:
        processors.append(
            structlog.processors.CallsiteParameterAdder(
                {
                    structlog.processors.CallsiteParameter.FILENAME,
                    structlog.processors.CallsiteParameter.LINENO,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                }
            )
        )
    return processors


def setup_logging():
    """
    Routes structlog and stdlib logging through a single stdout handler.

    Output is one JSON object per line unless RERANK_LOG_JSON is false, in which
    case structlog's console renderer is used (handy when running locally).
    """
    log_level_str = settings.LOG_LEVEL.upper()
    log_level_int = getattr(logging, log_level_str, logging.INFO)
    shared_processors = _build_shared_processors(log_level_int)

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = structlog.processors.JSONRenderer() if settings.LOG_JSON else structlog.dev.ConsoleRenderer()
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)

    for logger_name, level in _NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    log = structlog.get_logger("rerank_service.logging")
    log.info(
        "Logging configured for Rerank Service",
        log_level=log_level_str,
        json_logs_enabled=settings.LOG_JSON
    )
