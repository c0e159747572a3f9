"""
Logging helpers for the relay
"""

import sys
import time
import logging
from contextlib import contextmanager

import structlog
from structlog import contextvars as struct_context

from .config import settings


# false 只保留致命错误
_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "false": logging.CRITICAL,
}


def configure_structlog(log_level: str = settings.LOG_LEVEL) -> None:
    """Configure structlog for the given LOG_LEVEL value (false, info or debug)."""
    renderer = (
        structlog.processors.JSONRenderer()
        if log_level == "false"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            struct_context.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS.get(log_level, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


configure_structlog()

_logger = structlog.get_logger("chat_relay")


def bind_request_context(**kwargs) -> None:
    """绑定结构化日志上下文，忽略空值。"""
    struct_context.bind_contextvars(**{k: v for k, v in kwargs.items() if v is not None})


def reset_request_context(*keys: str) -> None:
    """清理指定上下文字段，未传入则清空全部。"""
    if keys:
        struct_context.unbind_contextvars(*keys)
    else:
        struct_context.clear_contextvars()


def _format(message: str, args: tuple) -> str:
    return message % args if args else message


def error_log(message: str, *args, **kwargs) -> None:
    """Error entry; emitted unless logging is disabled entirely."""
    _logger.error(_format(message, args), **kwargs)


def info_log(message: str, *args, **kwargs) -> None:
    _logger.info(_format(message, args), **kwargs)


def debug_log(message: str, *args, **kwargs) -> None:
    _logger.debug(_format(message, args), **kwargs)


def request_stage_log(stage: str, message: str, **kwargs) -> None:
    """
    Log a request stage transition. Payloads and message content are never
    passed here, only counts, flags and status codes.

    Args:
        stage: stage identifier, e.g. "received" or "upstream_request"
        message: text shown in the console renderer
        **kwargs: extra structured fields
    """
    info_log(f"[REQUEST] {message}", stage=stage.strip().lower().replace(" ", "_"), **kwargs)


@contextmanager
def perf_timer(operation_name: str):
    """Log the wall time of the wrapped block at debug level."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        debug_log(f"⏱️ {operation_name}", elapsed_ms=f"{elapsed_ms:.2f}ms")
