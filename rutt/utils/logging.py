"""Logging for rutt.

Everything logs under the ``rutt`` logger. ``init_logging`` attaches a rich
console handler (warnings and above, so the TUI is not flooded) and a
rotating JSON file in ``~/.rutt/logs``. Both pass records through
``SensitiveDataFilter`` first; app passwords and addresses never reach a
handler unmasked.
"""

import json
import logging
import re
import time
from datetime import datetime, timezone
from functools import wraps
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

from rich.logging import RichHandler

from .paths import LOGS_DIR

ROOT_LOGGER = "rutt"
LOG_FILE = "app.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5

# attributes every LogRecord has; anything else came in through ``extra``
_RECORD_FIELDS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


def _ensure_log_dir(path: Path = LOGS_DIR) -> Path:
    from .errors import FileSystemError

    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(f"Failed to create log directory: {path}") from e
    return path


## Formatting


class JSONFormatter(logging.Formatter):
    """One JSON object per line, including any ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_FIELDS and not key.startswith("_")
        }
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ContextAdapter(logging.LoggerAdapter):
    """Adds fixed context (e.g. the mailbox name) to every record."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


## Masking


def _redact(value: str) -> str:
    return "[REDACTED]"


def _redact_partially(value: str) -> str:
    if len(value) <= 6:
        return "[REDACTED]"
    return f"{value[:3]}{'*' * (len(value) - 6)}{value[-3:]}"


class SensitiveDataMasker:
    """Masks credentials and e-mail addresses in text and mappings.

    ``strategy`` is ``"full"`` (replace outright) or ``"partial"`` (keep the
    first and last three characters).
    """

    KEY_VALUE = re.compile(
        r"""((?:password|token|secret)["']?\s*[:=]\s*["']?)([^"'}\s]+)""",
        re.IGNORECASE,
    )
    EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

    SENSITIVE_FIELDS = frozenset(
        {
            "password",
            "app_password",
            "passwd",
            "secret",
            "token",
            "authorization",
            "credential",
            "credentials",
        }
    )

    STRATEGIES = {"full": _redact, "partial": _redact_partially}

    def __init__(self, strategy: str = "full"):
        if strategy not in self.STRATEGIES:
            raise ValueError(f"Unknown masking strategy: {strategy}")
        self.strategy = strategy
        self.mask_func = self.STRATEGIES[strategy]

    def mask_string(self, text: str) -> str:
        if not isinstance(text, str) or not text:
            return text
        text = self.KEY_VALUE.sub(lambda m: m.group(1) + self.mask_func(m.group(2)), text)
        return self.EMAIL.sub(lambda m: self._mask_email(m.group(0)), text)

    def mask_dict(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(data, dict):
            return data
        return {key: self._mask_value(key, value) for key, value in data.items()}

    def _mask_value(self, key: Any, value: Any) -> Any:
        if str(key).lower() in self.SENSITIVE_FIELDS:
            return self.mask_func(str(value))
        if isinstance(value, dict):
            return self.mask_dict(value)
        if isinstance(value, str):
            return self.mask_string(value)
        return value

    @staticmethod
    def _mask_email(address: str) -> str:
        user, _, domain = address.partition("@")
        user = f"{user[0]}***" if len(user) > 1 else "***"
        return f"{user}@{domain[0]}***"


class SensitiveDataFilter(logging.Filter):
    """Masks the message, its arguments and ``extra`` fields of each record."""

    def __init__(self, strategy: str = "full"):
        super().__init__()
        self.masker = SensitiveDataMasker(strategy)

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.masker.mask_string(record.msg)

        if isinstance(record.args, dict):
            record.args = self.masker.mask_dict(record.args)
        elif record.args:
            record.args = tuple(self.masker.mask_string(arg) for arg in record.args)

        for key in set(vars(record)) - _RECORD_FIELDS:
            setattr(record, key, self.masker._mask_value(key, getattr(record, key)))

        return True


## Setup


class LogManager:
    """Owns the handlers on the ``rutt`` logger."""

    def __init__(
        self, log_level: str = "INFO", log_to_file: bool = True, mask_strategy: str = "full"
    ):
        self.log_level = self._parse_level(log_level)
        self.log_to_file = log_to_file
        self.mask_strategy = mask_strategy
        self.root_logger = logging.getLogger(ROOT_LOGGER)
        self.root_logger.setLevel(logging.DEBUG)
        self.root_logger.handlers.clear()

        sensitive_filter = SensitiveDataFilter(mask_strategy)
        self.root_logger.addHandler(self._console_handler(sensitive_filter))
        if log_to_file:
            self.root_logger.addHandler(self._file_handler(sensitive_filter))

    @staticmethod
    def _parse_level(level: str) -> int:
        value = logging.getLevelName(str(level).upper())
        if not isinstance(value, int):
            raise ValueError(f"Invalid logging level: {level}")
        return value

    def _console_handler(self, sensitive_filter: logging.Filter) -> logging.Handler:
        handler = RichHandler(show_path=False, markup=False, rich_tracebacks=True)
        handler.setLevel(max(logging.WARNING, self.log_level))
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        handler.addFilter(sensitive_filter)
        return handler

    def _file_handler(self, sensitive_filter: logging.Filter) -> logging.Handler:
        from .errors import FileSystemError

        log_path = _ensure_log_dir() / LOG_FILE
        try:
            handler = RotatingFileHandler(
                log_path,
                maxBytes=MAX_LOG_BYTES,
                backupCount=LOG_BACKUPS,
                encoding="utf-8",
            )
        except OSError as e:
            raise FileSystemError(f"Failed to open log file: {log_path}") from e

        handler.setLevel(self.log_level)
        handler.setFormatter(JSONFormatter())
        handler.addFilter(sensitive_filter)
        return handler

    def set_level(self, level: str):
        """Change the level at runtime; the console never goes below WARNING."""
        self.log_level = self._parse_level(level)
        for handler in self.root_logger.handlers:
            if isinstance(handler, RichHandler):
                handler.setLevel(max(logging.WARNING, self.log_level))
            else:
                handler.setLevel(self.log_level)


## Tracing decorators


def _trace_exit(logger: logging.Logger, name: str, started: float, error=None):
    elapsed = time.perf_counter() - started
    if error is None:
        logger.debug(f"<- {name} ({elapsed:.3f}s)")
    else:
        logger.debug(f"<- {name} failed after {elapsed:.3f}s: {type(error).__name__}")


def log_call(func):
    """Trace entry and exit of ``func`` at DEBUG."""
    name = f"{func.__module__}.{func.__qualname__}"
    logger = get_logger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f"-> {name}")
        started = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            _trace_exit(logger, name, started, e)
            raise
        _trace_exit(logger, name, started)
        return result

    return wrapper


def async_log_call(func):
    """Trace entry and exit of the coroutine function ``func`` at DEBUG."""
    name = f"{func.__module__}.{func.__qualname__}"
    logger = get_logger(func.__module__)

    @wraps(func)
    async def wrapper(*args, **kwargs):
        logger.debug(f"-> {name}")
        started = time.perf_counter()
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            _trace_exit(logger, name, started, e)
            raise
        _trace_exit(logger, name, started)
        return result

    return wrapper


_log_manager: Optional[LogManager] = None


def init_logging(
    log_level: str = "INFO", log_to_file: bool = True, mask_strategy: str = "full"
) -> LogManager:
    """Attach handlers once; later calls only change the level."""
    global _log_manager

    if _log_manager is None:
        _log_manager = LogManager(
            log_level, log_to_file=log_to_file, mask_strategy=mask_strategy
        )
    else:
        _log_manager.set_level(log_level)
    return _log_manager


def get_logger(
    name: Optional[str] = None, **context
) -> logging.Logger | ContextAdapter:
    """Logger under ``rutt``, wrapped in a ContextAdapter when context is given."""
    if name and not name.startswith(ROOT_LOGGER):
        name = f"{ROOT_LOGGER}.{name}"

    logger = logging.getLogger(name or ROOT_LOGGER)
    return ContextAdapter(logger, context) if context else logger
