from __future__ import annotations

"""
sqsstream.core.log
==================

Structured logging for the library:
- contextvars-bound fields (queue, mode, stream_id) merged into every record;
- JSON formatter for containers, compact human formatter for local runs;
- a LoggerAdapter that accepts arbitrary keyword fields;
- `swallow(...)` for best-effort paths that must not mask the primary error.

Importing the package is silent: the root `sqsstream` logger only carries a
NullHandler until an application calls `enable_stdout_logging()` or
`configure_from_env()`.
"""

import contextvars
import json
import logging
import os
import sys
from collections.abc import Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any, ClassVar, Final

__all__ = [
    "bind_context",
    "configure_from_env",
    "disable_stdout_logging",
    "enable_stdout_logging",
    "get_logger",
    "log_context",
    "set_level",
    "swallow",
]

_ROOT: Final[str] = "sqsstream"
_ENV_PREFIX: Final[str] = "SQSSTREAM_LOG_"
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})

# ---------- Context ----------

_ctx: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar("sqsstream_log_ctx", default=None)


def _current() -> dict[str, Any]:
    ctx = _ctx.get()
    return dict(ctx) if ctx else {}


def _clean(fields: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


def bind_context(**fields: Any) -> None:
    """Merge fields into the structured context of the current task."""
    ctx = _current()
    ctx.update(_clean(fields))
    _ctx.set(ctx)


@contextmanager
def log_context(**fields: Any):
    """Add fields to the structured context for the duration of the block."""
    token = _ctx.set({**_current(), **_clean(fields)})
    try:
        yield
    finally:
        _ctx.reset(token)


# ---------- Formatters ----------

_RECORD_ATTRS: Final[frozenset[str]] = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


def _iso_utc_ms(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ts, level, logger, message, context, extras, error."""

    def __init__(self, *, include_stack: bool = False) -> None:
        super().__init__()
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": _iso_utc_ms(record.created),
            "level": record.levelname,
            "logger": record.name,
        }
        msg = record.getMessage()
        if msg:
            out["message"] = msg
        ctx = _ctx.get()
        if ctx:
            out.update(ctx)
        for k, v in record.__dict__.items():
            if k not in _RECORD_ATTRS and k not in out:
                out[k] = v
        if record.exc_info and record.exc_info[0] is not None:
            err = {"type": record.exc_info[0].__name__, "message": str(record.exc_info[1])}
            if self.include_stack:
                err["stack"] = self.formatException(record.exc_info)
            out["error"] = err
        return json.dumps(out, ensure_ascii=False, separators=(",", ":"), default=str)


class HumanFormatter(logging.Formatter):
    """Single-line formatter that appends the stream context in brackets."""

    default_time_format = "%Y-%m-%d %H:%M:%S"
    default_msec_format = "%s.%03d"
    context_keys: ClassVar[tuple[str, ...]] = ("stream_id", "queue", "mode")

    def format(self, record: logging.LogRecord) -> str:
        line = f"{self.formatTime(record)} {record.levelname:<5} {record.name}: {record.getMessage()}"
        ctx = _ctx.get() or {}
        shown = [f"{k}={ctx[k]}" for k in self.context_keys if ctx.get(k) is not None]
        if shown:
            line += "  [" + ", ".join(shown) + "]"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ContextFilter(logging.Filter):
    """Copy context fields onto the record so handlers can route on them."""

    def filter(self, record: logging.LogRecord) -> bool:
        for k, v in (_ctx.get() or {}).items():
            record.__dict__.setdefault(k, v)
        return True


class _LevelRange(logging.Filter):
    def __init__(self, lo: int = logging.NOTSET, hi: int = logging.CRITICAL) -> None:
        super().__init__()
        self.lo = lo
        self.hi = hi

    def filter(self, record: logging.LogRecord) -> bool:
        return self.lo <= record.levelno <= self.hi


class _FieldsAdapter(logging.LoggerAdapter):
    """
    Moves unknown keyword arguments into `extra`, so call sites can write
    `log.info("received", count=3, wait_sec=20)`.
    """

    _passthrough: ClassVar[frozenset[str]] = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})

    def process(self, msg, kwargs):
        extra = kwargs.get("extra")
        extra = dict(extra) if isinstance(extra, dict) else {}
        for k in [k for k in kwargs if k not in self._passthrough]:
            key = f"field_{k}" if k in _RECORD_ATTRS else k
            extra.setdefault(key, kwargs.pop(k))
        kwargs["extra"] = extra
        return msg, kwargs


# ---------- Configuration ----------

_bootstrapped = False
_HANDLER_NAMES: Final[tuple[str, str]] = ("_sqsstream_stdout", "_sqsstream_stderr")


def _bootstrap() -> None:
    global _bootstrapped
    if _bootstrapped:
        return
    root = logging.getLogger(_ROOT)
    root.setLevel(logging.DEBUG)
    if not any(isinstance(h, logging.NullHandler) for h in root.handlers):
        root.addHandler(logging.NullHandler())
    if not any(isinstance(f, ContextFilter) for f in root.filters):
        root.addFilter(ContextFilter())
    _bootstrapped = True


def _level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"invalid log level: {level!r}")
    return resolved


def get_logger(name: str | None = None) -> logging.LoggerAdapter:
    """Namespaced logger under `sqsstream` accepting keyword fields."""
    _bootstrap()
    base = logging.getLogger(_ROOT)
    return _FieldsAdapter(base.getChild(name) if name else base, {})


def set_level(level: int | str) -> None:
    logging.getLogger(_ROOT).setLevel(_level(level))


def enable_stdout_logging(
    *,
    level: int | str = logging.INFO,
    json_output: bool = True,
    include_stack: bool = False,
    pretty: bool = False,
    route_errors_to_stderr: bool = False,
) -> None:
    """
    Attach stream handlers (tests, local runs, containers).

    pretty=True selects the human formatter, otherwise JSON (or plain text
    when json_output=False). With route_errors_to_stderr=True, ERROR and above
    go to stderr and everything else to stdout.
    """
    lvl = _level(level)
    _bootstrap()
    disable_stdout_logging()
    root = logging.getLogger(_ROOT)

    fmt: logging.Formatter
    if pretty:
        fmt = HumanFormatter()
    elif json_output:
        fmt = JsonFormatter(include_stack=include_stack)
    else:
        fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    targets: list[tuple[str, Any, logging.Filter | None]]
    if route_errors_to_stderr:
        targets = [
            (_HANDLER_NAMES[0], sys.stdout, _LevelRange(hi=logging.WARNING)),
            (_HANDLER_NAMES[1], sys.stderr, _LevelRange(lo=logging.ERROR)),
        ]
    else:
        targets = [(_HANDLER_NAMES[0], sys.stdout, None)]

    for name, stream, flt in targets:
        h = logging.StreamHandler(stream)
        h.set_name(name)
        h.setLevel(lvl)
        h.setFormatter(fmt)
        if flt is not None:
            h.addFilter(flt)
        root.addHandler(h)


def disable_stdout_logging() -> None:
    root = logging.getLogger(_ROOT)
    for h in list(root.handlers):
        if h.get_name() in _HANDLER_NAMES:
            root.removeHandler(h)


def configure_from_env() -> None:
    """
    Honors:
      - SQSSTREAM_LOG_STDOUT=1  -> attach a stdout handler
      - SQSSTREAM_LOG_LEVEL=INFO
      - SQSSTREAM_LOG_PRETTY=1  -> human formatter instead of JSON
      - SQSSTREAM_LOG_STACK=1   -> include stack traces in JSON output
    """

    def flag(name: str) -> bool:
        return os.getenv(_ENV_PREFIX + name, "").lower() in _TRUTHY

    level = os.getenv(_ENV_PREFIX + "LEVEL", "INFO")
    _bootstrap()
    set_level(level)
    if flag("STDOUT"):
        pretty = flag("PRETTY")
        enable_stdout_logging(level=level, json_output=not pretty, include_stack=flag("STACK"), pretty=pretty)
    else:
        disable_stdout_logging()


# ---------- Best-effort blocks ----------


@contextmanager
def swallow(
    *,
    logger: logging.Logger | logging.LoggerAdapter | None = None,
    level: int = logging.DEBUG,
    code: str,
    msg: str | None = None,
    reraise: bool = False,
    extra: Mapping[str, Any] | None = None,
):
    """
    Log and suppress an exception raised inside the block.

        with swallow(logger=log, code="stream.close.queue", msg="queue client close failed"):
            await queue.close()
    """
    adapter = logger or get_logger("swallow")
    if not isinstance(adapter, logging.LoggerAdapter):
        adapter = _FieldsAdapter(adapter, {})
    try:
        yield
    except Exception as e:
        adapter.log(level, msg or "suppressed exception", exc_info=e, code=code, **dict(extra or {}))
        if reraise:
            raise


_bootstrap()
