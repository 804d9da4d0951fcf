from __future__ import annotations

import logging
from typing import Any, MutableMapping

TRACE_LEVEL = 5
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _trace(self: logging.Logger, message: str, *args: object, **kwargs: object) -> None:
    if self.isEnabledFor(TRACE_LEVEL):
        self._log(TRACE_LEVEL, message, args, **kwargs)


class MapperLogAdapter(logging.LoggerAdapter):
    """Prefix every record with the mapper it came from, e.g. ``[power]``."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("mapper", self.extra["mapper"])
        kwargs["extra"] = extra
        return f"[{self.extra['mapper']}] {msg}", kwargs

    def trace(self, msg: str, *args: object, **kwargs: object) -> None:
        self.log(TRACE_LEVEL, msg, *args, **kwargs)


def mapper_logger(mapper: str) -> MapperLogAdapter:
    return MapperLogAdapter(logging.getLogger(f"redfish_tap.mappers.{mapper}"), {"mapper": mapper})


def configure_logging(level: int) -> None:
    logging.addLevelName(TRACE_LEVEL, "TRACE")
    setattr(logging.Logger, "trace", _trace)
    handlers: list[logging.Handler] = []
    try:
        from colorlog import ColoredFormatter  # type: ignore

        formatter = ColoredFormatter(
            "%(log_color)s" + LOG_FORMAT,
            log_colors={
                "TRACE": "cyan",
                "DEBUG": "blue",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        handlers.append(handler)
    except ImportError:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(handler)
    logging.basicConfig(level=level, handlers=handlers, force=True)
    # urllib3 logs every retry/connection at DEBUG; keep it out of -v output
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))


def resolve_log_level(verbosity: int, fallback: str) -> int:
    if verbosity >= 2:
        return TRACE_LEVEL
    if verbosity == 1:
        return logging.DEBUG
    name = fallback.upper()
    if name == "TRACE":
        return TRACE_LEVEL
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO
