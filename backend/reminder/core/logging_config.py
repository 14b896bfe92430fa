"""
Logging configuration with structured JSON output, context support and secret masking
"""
import json
import logging
import re
import sys
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional

from reminder.core.config import LoggingSettings, get_settings

# Context attached to every JSON record (e.g. the tick number)
log_context: ContextVar[Dict[str, Any]] = ContextVar('log_context', default={})

_STANDARD_RECORD_KEYS = frozenset([
    'name', 'msg', 'args', 'created', 'filename', 'funcName', 'levelname',
    'levelno', 'lineno', 'module', 'msecs', 'message', 'pathname', 'process',
    'processName', 'relativeCreated', 'thread', 'threadName', 'exc_info',
    'exc_text', 'stack_info', 'taskName',
])


class SensitiveDataFilter(logging.Filter):
    """Filter to mask credentials in log messages"""

    SENSITIVE_PATTERNS = [
        (r'(\w+://[^:/@\s]+):([^@\s]+)@', r'\1:***@'),
        (r'password["\']?\s*[:=]\s*["\']?([^"\'\s&,}]+)', r'password=***'),
        (r'token["\']?\s*[:=]\s*["\']?([^"\'\s&,}]+)', r'token=***'),
        (r'secret["\']?\s*[:=]\s*["\']?([^"\'\s&,}]+)', r'secret=***'),
    ]

    def __init__(self, enabled: bool = True):
        super().__init__()
        self.enabled = enabled

    @classmethod
    def mask(cls, text: str) -> str:
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            text = re.sub(pattern, replacement, text, flags=re.IGNORECASE)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.enabled:
            return True

        if isinstance(record.msg, str):
            record.msg = self.mask(record.msg)

        if record.args and isinstance(record.args, tuple):
            record.args = tuple(
                self.mask(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True


class ContextualFormatter(logging.Formatter):
    """JSON formatter that merges the current log context and `extra=` fields"""

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname,
            'logger': record.name,
            'function': record.funcName,
            'line': record.lineno,
            'message': record.getMessage(),
        }

        ctx = log_context.get()
        if ctx:
            log_dict.update(ctx)

        if record.exc_info:
            log_dict['exception'] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _STANDARD_RECORD_KEYS or key in log_dict:
                continue
            try:
                json.dumps(value)
                log_dict[key] = value
            except (TypeError, ValueError):
                log_dict[key] = str(value)

        return json.dumps(log_dict, ensure_ascii=False, default=str)


class LoggingConfig:
    """Centralized logging configuration"""

    _configured = False
    _module_levels: Dict[str, str] = {}

    @classmethod
    def configure(
        cls,
        settings: Optional[LoggingSettings] = None,
        module_levels: Optional[Dict[str, str]] = None,
        force: bool = False
    ):
        """Configure logging for the process"""
        if cls._configured and not force:
            return

        if settings is None:
            settings = get_settings().logging

        levels = {
            "sqlalchemy.engine": "WARNING",
            "sqlalchemy.pool": "WARNING",
            "uvicorn.access": "WARNING",
            "uvicorn.error": "WARNING",
            "reminder": settings.level,
            "root": settings.level,
        }

        if settings.module_levels:
            try:
                levels.update(json.loads(settings.module_levels))
            except (json.JSONDecodeError, TypeError):
                pass

        if module_levels:
            levels.update(module_levels)

        cls._module_levels = levels

        if settings.format.lower() == "json":
            formatter = ContextualFormatter(datefmt='%Y-%m-%dT%H:%M:%S%z')
        else:
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )

        secret_filter = SensitiveDataFilter(enabled=not settings.log_sensitive_data)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(secret_filter)
        handlers = [console_handler]

        if settings.file_enabled:
            log_path = Path(settings.file_path)
            if not log_path.is_absolute():
                log_path = Path(__file__).resolve().parents[3] / log_path
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = TimedRotatingFileHandler(
                filename=str(log_path),
                when="midnight",
                backupCount=settings.file_retention,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            file_handler.addFilter(secret_filter)
            handlers.append(file_handler)

        logging.basicConfig(
            level=getattr(logging, levels["root"].upper()),
            handlers=handlers,
            force=True
        )

        for module, level in levels.items():
            if module != "root":
                logging.getLogger(module).setLevel(getattr(logging, level.upper()))

        cls._configured = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger for a module"""
        if not cls._configured:
            cls.configure()
        return logging.getLogger(name)

    @classmethod
    def set_module_level(cls, module: str, level: str):
        """Set logging level for a specific module"""
        logging.getLogger(module).setLevel(getattr(logging, level.upper()))
        cls._module_levels[module] = level

    @classmethod
    def set_context(cls, **kwargs):
        """Add fields to the log context of the current task"""
        ctx = log_context.get().copy()
        ctx.update(kwargs)
        log_context.set(ctx)

    @classmethod
    def clear_context(cls):
        """Clear the log context of the current task"""
        log_context.set({})
