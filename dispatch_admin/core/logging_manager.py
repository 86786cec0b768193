"""
Logging setup for the dispatch admin backend
Secret-redacting formatters, JSON output for production, rotating log file
"""

import json
import logging
import logging.handlers
import os
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List


SENSITIVE_FIELDS = (
    'password', 'secret', 'token', 'key', 'authorization',
    'cookie', 'session', 'api_key', 'private_key', 'pin', 'pincode',
)

_SENSITIVE_PATTERNS = [
    re.compile(rf'({field})(["\']?\s*[:=]\s*["\']?)([^"\'\s,}}]+)', re.IGNORECASE)
    for field in SENSITIVE_FIELDS
]


class SecuritySafeFormatter(logging.Formatter):
    """Formatter that redacts secrets before they reach any handler"""

    def format(self, record):
        record.msg = self._sanitize_message(record.getMessage())
        record.args = None
        return super().format(record)

    def _sanitize_message(self, message: str) -> str:
        lowered = message.lower()
        for field, pattern in zip(SENSITIVE_FIELDS, _SENSITIVE_PATTERNS):
            if field in lowered:
                message = pattern.sub(r'\1\2***', message)
        return message

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._sanitize_message(value)
        if isinstance(value, dict):
            return {k: '***' if any(sens in str(k).lower() for sens in SENSITIVE_FIELDS)
                    else self._sanitize_value(v)
                    for k, v in value.items()}
        return value


class JSONFormatter(SecuritySafeFormatter):
    """One JSON object per line"""

    def format(self, record):
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'component': record.name,
            'message': self._sanitize_message(record.getMessage()),
            'metadata': {
                'filename': record.filename,
                'lineno': record.lineno,
                'funcName': record.funcName,
            },
        }
        request_id = getattr(record, 'request_id', None)
        if request_id:
            log_data['request_id'] = request_id
        if record.exc_info:
            log_data['stack_trace'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class LoggingManager:
    """Configures root logging once per process"""

    def __init__(self):
        self.configured = False
        self.handlers: List[logging.Handler] = []

    def configure(self, config):
        """Attach console and file handlers according to AppConfig.logging"""
        if self.configured:
            return

        settings = config.logging
        level = getattr(logging, settings.level.upper())

        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)

        if settings.console_enabled:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            if config.environment.value == 'production':
                console_handler.setFormatter(JSONFormatter())
            else:
                console_handler.setFormatter(SecuritySafeFormatter(settings.format))
            root_logger.addHandler(console_handler)
            self.handlers.append(console_handler)

        if settings.file_enabled:
            log_path = Path(settings.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                filename=str(log_path),
                maxBytes=settings.file_max_size,
                backupCount=settings.file_backup_count,
                encoding='utf-8',
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(JSONFormatter())
            root_logger.addHandler(file_handler)
            self.handlers.append(file_handler)

            try:
                os.chmod(file_handler.baseFilename, 0o640)
            except OSError:
                pass

        self.configured = True
        logging.getLogger(__name__).info("Logging system configured successfully")

    def shutdown(self):
        root_logger = logging.getLogger()
        for handler in self.handlers:
            root_logger.removeHandler(handler)
            try:
                handler.close()
            except Exception as e:
                print(f"Error closing log handler: {e}", file=sys.stderr)

        self.handlers.clear()
        self.configured = False


logging_manager = LoggingManager()
