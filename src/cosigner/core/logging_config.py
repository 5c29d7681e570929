"""
Cosigner - Structured Logging Configuration

JSON log output for the client:
- One JSON object per record, with service and source location
- Key material never reaches a handler: private keys, secrets and encrypting
  keys passed through ``extra`` are redacted, identifiers are shortened
- Optional rotating log file
- Level taken from ClientConfig instead of a process-wide switch

Usage:
    from cosigner.core.config import ClientConfig
    from cosigner.core.logging_config import configure_from_config

    logger = configure_from_config(ClientConfig(verbose=True))
    logger.info("Wallet opened", extra={"event": "client.wallet_opened"})
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pythonjsonlogger import jsonlogger

from cosigner.core.config import ClientConfig

REDACTED = "[redacted]"
IDENTIFIER_PREFIX = 12

# extra={} keys that must never be written out
SENSITIVE_FIELDS = frozenset(
    {
        "xpriv_key",
        "request_priv_key",
        "wallet_priv_key",
        "personal_encrypting_key",
        "shared_encrypting_key",
        "secret",
        "password",
    }
)
# extra={} keys shortened to IDENTIFIER_PREFIX characters
IDENTIFIER_FIELDS = frozenset({"wallet_id", "copayer_id", "txp_id"})


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter for client logs.

    Every record carries ``timestamp``, ``level``, ``service`` and ``source``;
    fields from ``extra`` are filtered through SENSITIVE_FIELDS and
    IDENTIFIER_FIELDS before serialization.
    """

    def __init__(
        self,
        fmt: str = "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name: str = "cosigner",
    ):
        super().__init__(fmt=fmt)
        self.service_name = service_name

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        for key in list(log_record):
            if key in SENSITIVE_FIELDS:
                log_record[key] = REDACTED
            elif key in IDENTIFIER_FIELDS and isinstance(log_record[key], str):
                log_record[key] = log_record[key][:IDENTIFIER_PREFIX]

        if not log_record.get("timestamp"):
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        if not log_record.get("level"):
            log_record["level"] = record.levelname.lower()
        log_record["service"] = self.service_name
        log_record["source"] = {
            "function": record.funcName,
            "module": record.module,
            "line": record.lineno,
        }


def _build_handlers(
    formatter: logging.Formatter,
    log_file: Optional[str],
    enable_console: bool,
    max_bytes: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.RotatingFileHandler(
                filename=log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(
    name: str = "cosigner",
    log_file: Optional[str] = None,
    level: str = "INFO",
    enable_console: bool = True,
    max_bytes: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5,
) -> logging.Logger:
    """
    Route a logger (the package logger by default) to JSON handlers.

    Existing handlers on that logger are replaced, so calling this twice does
    not duplicate output. Child loggers (``cosigner.client.api`` ...) inherit
    the handlers through propagation.

    Args:
        name: Logger name
        log_file: Path to a rotating JSON log file (optional)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Whether to log to stderr
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper()))
    for handler in logger.handlers:
        handler.close()
    logger.handlers = []

    formatter = CustomJsonFormatter(service_name=name.split(".")[0])
    try:
        handlers = _build_handlers(formatter, log_file, enable_console, max_bytes, backup_count)
    except OSError as e:
        handlers = _build_handlers(formatter, None, enable_console, max_bytes, backup_count)
        for handler in handlers:
            logger.addHandler(handler)
        logger.warning(
            "Could not open log file %s: %s",
            log_file,
            e,
            extra={"event": "logging.file_handler_failed"},
        )
        return logger

    for handler in handlers:
        logger.addHandler(handler)
    return logger


def configure_from_config(config: ClientConfig) -> logging.Logger:
    """Apply a ClientConfig's logging settings to the ``cosigner`` logger."""
    return setup_logging(
        name="cosigner",
        log_file=config.log_file,
        level=config.effective_log_level,
    )
