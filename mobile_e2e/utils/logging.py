"""
Step Logging - Structured step/success/failure lines that never log credentials
"""
import logging
import re
from contextlib import contextmanager
from typing import Iterator, List, Optional


class StepLogger:
    """Logger for named harness operations that redacts sensitive information"""

    # Patterns to redact
    SENSITIVE_PATTERNS = [
        r'(password["\']?\s*[:=]\s*["\']?)([^"\'\s|]+)',
        r'(api[_-]?key["\']?\s*[:=]\s*["\']?)([^"\'\s|]+)',
        r'(token["\']?\s*[:=]\s*["\']?)([^"\'\s|]+)',
        r'(secret["\']?\s*[:=]\s*["\']?)([^"\'\s|]+)',
        r'(credential["\']?\s*[:=]\s*["\']?)([^"\'\s|]+)',
    ]

    def __init__(self, name: str = "mobile_e2e", prefix: str = "[iOS]", level: int = logging.INFO):
        """
        Initialize step logger

        Args:
            name: Logger name
            prefix: Platform prefix put in front of every line
            level: Logging level
        """
        self.prefix = prefix
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)
        self._secrets: List[str] = []

        # Create console handler if not exists
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setLevel(level)

            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def add_secret(self, value: Optional[str]):
        """Register a literal value (e.g. an auth token) that must never reach the log"""
        if value and value not in self._secrets:
            self._secrets.append(value)

    def _redact(self, message: str) -> str:
        """
        Redact sensitive information from log message

        Args:
            message: Log message

        Returns:
            Redacted message
        """
        redacted = message
        for secret in self._secrets:
            redacted = redacted.replace(secret, "[REDACTED]")
        for pattern in self.SENSITIVE_PATTERNS:
            redacted = re.sub(pattern, r'\1[REDACTED]', redacted, flags=re.IGNORECASE)
        return redacted

    def _format(self, name: str, details: str, suffix: str = "") -> str:
        line = f"{self.prefix} {name}{suffix}"
        if details:
            line += f" | {details}"
        return self._redact(line)

    def log_step(self, name: str, details: str = ""):
        """Log the start (or an intermediate point) of a named operation"""
        self.logger.info(self._format(name, details))

    def log_success(self, name: str, details: str = ""):
        """Log successful completion of a named operation"""
        self.logger.info(self._format(name, details, " OK"))

    def log_error(self, name: str, details: str = "", error: Optional[BaseException] = None):
        """Log failure of a named operation"""
        line = self._format(name, details, " FAILED")
        if error is not None:
            line += f" | {self._redact(str(error))}"
        self.logger.error(line)

    @contextmanager
    def step(self, name: str, details: str = "") -> Iterator[None]:
        """
        Wrap a block with step/OK/FAILED lines. Errors are re-raised unchanged.

        Args:
            name: Operation name
            details: Free-form details appended to every line
        """
        self.log_step(name, details)
        try:
            yield
        except BaseException as e:
            self.log_error(name, details, e)
            raise
        self.log_success(name, details)

    def debug(self, message: str, *args, **kwargs):
        """Log debug message"""
        self.logger.debug(self._redact(str(message)), *args, **kwargs)

    def info(self, message: str, *args, **kwargs):
        """Log info message"""
        self.logger.info(self._redact(str(message)), *args, **kwargs)

    def warning(self, message: str, *args, **kwargs):
        """Log warning message"""
        self.logger.warning(self._redact(str(message)), *args, **kwargs)

    def error(self, message: str, *args, **kwargs):
        """Log error message"""
        self.logger.error(self._redact(str(message)), *args, **kwargs)
