# wabridge/core/logging_config.py

import sys
import time
import uuid
import logging
import contextvars

from loguru import logger

UNSET_TRACE_ID = "unset"
TRACE_REQUEST_HEADER = "X-Request-ID"
TRACE_RESPONSE_HEADER = "X-Trace-ID"

# Noisy client libraries kept at WARNING
QUIET_LOGGERS = ("httpx", "httpcore", "pymongo", "uvicorn.access")

trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default=UNSET_TRACE_ID)

logger.configure(extra={"trace_id": UNSET_TRACE_ID})

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}Z</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> | "
    "<magenta>TID:{extra[trace_id]: >12.12}</magenta> | "
    "<level>{message}</level>"
)

class InterceptHandler(logging.Handler):
    """Sends stdlib `logging` records (uvicorn, httpx, pymongo) to loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).bind(
            trace_id=trace_id_var.get()
        ).log(level, record.getMessage())

def setup_logging(log_level: str = "INFO"):
    """Single loguru sink on stderr; stdlib logging is routed into it."""
    level = log_level.upper()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=LOG_FORMAT,
        enqueue=True,
        backtrace=True,
        diagnose=level == "DEBUG",
        colorize=True,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.success(f"Logging ready at level {level}")

def new_trace_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"

async def add_trace_id_middleware(request, call_next):
    """Binds a trace id (caller's X-Request-ID or a fresh one) to every log line of the request."""
    trace_id = request.headers.get(TRACE_REQUEST_HEADER) or new_trace_id()
    token = trace_id_var.set(trace_id)
    started = time.perf_counter()
    route = f"{request.method} {request.url.path}"

    with logger.contextualize(trace_id=trace_id):
        logger.info(f"--> {route}")
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(f"<-- {route} raised after {(time.perf_counter() - started) * 1000:.1f}ms")
            raise
        finally:
            trace_id_var.reset(token)
        response.headers[TRACE_RESPONSE_HEADER] = trace_id
        logger.info(f"<-- {route} {response.status_code} in {(time.perf_counter() - started) * 1000:.1f}ms")
        return response
