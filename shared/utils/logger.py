"""
Logging utilities for the MedicinaHub portal

Provides centralized logging configuration (stdlib logging + structlog)
and the append-only API error log.
"""

import os
import json
import logging
import logging.config
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any

import structlog
import yaml

# Default logging configuration
DEFAULT_LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': '%Y-%m-%d %H:%M:%S'
        },
        'plain': {
            'format': '%(message)s'
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'plain',
            'stream': 'ext://sys.stdout'
        }
    },
    'root': {
        'level': 'INFO',
        'handlers': ['console']
    },
    'loggers': {
        'uvicorn.access': {
            'level': 'WARNING',
            'handlers': ['console'],
            'propagate': False
        }
    }
}

ERROR_LOG_SEPARATOR = '-' * 80


def _load_config_file(config_path: str) -> Optional[Dict[str, Any]]:
    try:
        with open(config_path, 'r') as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logging.getLogger(__name__).warning(f"Failed to load logging config from {config_path}: {e}")
        return None


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    json_logs: bool = False
) -> None:
    """
    Setup stdlib logging and structlog

    Args:
        config_path: Path to a YAML logging configuration file
        log_level: Override log level
        json_logs: Render structlog events as JSON instead of console lines
    """
    config = None
    if config_path and os.path.exists(config_path):
        config = _load_config_file(config_path)

    if not config:
        config = json.loads(json.dumps(DEFAULT_LOGGING_CONFIG))

    if log_level:
        log_level = log_level.upper()
        for logger_config in config.get('loggers', {}).values():
            logger_config['level'] = log_level
        if 'root' in config:
            config['root']['level'] = log_level
        for handler_config in config.get('handlers', {}).values():
            handler_config['level'] = log_level

    logging.config.dictConfig(config)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


class ErrorLogWriter:
    """Append-only writer for the API error log

    Write failures are reported through structlog and never raised, so an
    unwritable log cannot block the error response.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = structlog.get_logger(__name__)

    @staticmethod
    def format_entry(
        status: int,
        code: str,
        message: str,
        ip_address: str,
        method: str,
        path: str,
        details: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        timestamp: Optional[datetime] = None
    ) -> str:
        """Render one log entry, separator line included"""
        ts = (timestamp or datetime.now()).strftime('%Y-%m-%d %H:%M:%S')
        entry = f"[{ts}] [{status}] [{code}] [{ip_address}] [{method} {path}] {message}"
        if details:
            entry += "\nDetails: " + json.dumps(details, default=str, ensure_ascii=False)
        if user_id:
            entry += f"\nUser ID: {user_id}"
        return entry + "\n" + ERROR_LOG_SEPARATOR + "\n"

    def write(self, entry: str) -> bool:
        """Append an entry; returns False if the write failed"""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as f:
                f.write(entry)
            return True
        except OSError as e:
            self.logger.warning("Failed to write error log", path=str(self.path), error=str(e))
            return False
