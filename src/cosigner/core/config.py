"""
Cosigner client configuration

Configuration is an explicit object handed to the client at construction.
``ClientConfig.from_env()`` builds one from environment variables:

- COSIGNER_BASE_URL: coordination service root (default http://localhost:3001/copay/api)
- COSIGNER_NETWORK: default network for new wallets (livenet | testnet)
- COSIGNER_REQUEST_TIMEOUT: per-request timeout in seconds
- COSIGNER_LOG_LEVEL: log level for the ``cosigner`` logger
- COSIGNER_LOG_FILE: optional JSON log file
- COSIGNER_VERBOSE: "1" forces DEBUG logging
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:3001/copay/api"
DEFAULT_NETWORK = "livenet"
DEFAULT_REQUEST_TIMEOUT = 30.0
VALID_NETWORKS = ("livenet", "testnet")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


@dataclass(frozen=True)
class ClientConfig:
    """
    Settings for a WalletClient.

    Attributes:
        base_url: Coordination service root URL; request paths are appended
        network: Network used by create_wallet when none is given
        request_timeout: Total timeout per request in seconds (transport only)
        log_level: Level applied to the ``cosigner`` logger by setup_logging
        log_file: Optional rotating JSON log file
        verbose: Shortcut for DEBUG logging
    """

    base_url: str = DEFAULT_BASE_URL
    network: str = DEFAULT_NETWORK
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = "INFO"
    log_file: Optional[str] = None
    verbose: bool = False

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ConfigurationError("base_url is required")
        if self.network not in VALID_NETWORKS:
            raise ConfigurationError(f"Invalid network: {self.network}")
        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")
        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"Invalid log level: {self.log_level}")

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.verbose else self.log_level.upper()

    @classmethod
    def from_env(cls) -> "ClientConfig":
        timeout_raw = os.getenv("COSIGNER_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT)).strip()
        try:
            timeout = float(timeout_raw)
        except ValueError as exc:
            raise ConfigurationError(f"COSIGNER_REQUEST_TIMEOUT must be a number, got {timeout_raw!r}") from exc

        config = cls(
            base_url=os.getenv("COSIGNER_BASE_URL", DEFAULT_BASE_URL).strip(),
            network=os.getenv("COSIGNER_NETWORK", DEFAULT_NETWORK).strip().lower(),
            request_timeout=timeout,
            log_level=os.getenv("COSIGNER_LOG_LEVEL", "INFO").strip().upper(),
            log_file=os.getenv("COSIGNER_LOG_FILE", "").strip() or None,
            verbose=os.getenv("COSIGNER_VERBOSE", "0").strip() == "1",
        )
        logger.debug(
            "Loaded client configuration from environment",
            extra={"event": "config.loaded", "base_url": config.base_url, "network": config.network},
        )
        return config
