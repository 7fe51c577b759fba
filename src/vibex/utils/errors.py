"""
Error handling framework for vibex.

This module provides:
- Hierarchical exception classes
- Error context preservation
- Structured error payloads for logging
- Backoff computation for reconnect loops
"""

from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import math
import random


class ErrorSeverity(Enum):
    """Error severity levels."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(Enum):
    """Error categories for classification."""
    NETWORK = "network"
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    INPUT = "input"
    INTERNAL = "internal"
    UNKNOWN = "unknown"


@dataclass
class ErrorContext:
    """Context information for an error."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class VibexError(Exception):
    """Base exception for all vibex errors."""

    code: str = "VIBEX_ERROR"
    default_message: str = "An error occurred in vibex"
    severity: ErrorSeverity = ErrorSeverity.ERROR
    category: ErrorCategory = ErrorCategory.UNKNOWN
    is_retryable: bool = False

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message or self.default_message
        self.context = context or ErrorContext()
        self.cause = cause
        super().__init__(self.message)

    def get_suggestions(self) -> List[str]:
        """Get error resolution suggestions."""
        return []

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for structured logging."""
        return {
            "code": self.code,
            "message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "is_retryable": self.is_retryable,
            "suggestions": self.get_suggestions(),
            "context": {
                "timestamp": self.context.timestamp.isoformat(),
                "session_id": self.context.session_id,
                "component": self.context.component,
                "operation": self.context.operation,
                "metadata": self.context.metadata,
            },
            "cause": repr(self.cause) if self.cause else None,
        }


class ConfigurationError(VibexError):
    """Configuration errors."""
    code = "CONFIG_ERROR"
    default_message = "Configuration error"
    category = ErrorCategory.CONFIGURATION

    def get_suggestions(self) -> List[str]:
        return [
            "Check the VIBEX_* environment variables",
            "Check the --web, --socket and --server URLs",
        ]


# Network Errors

class NetworkError(VibexError):
    """Network-related errors."""
    code = "NETWORK_ERROR"
    default_message = "Network error occurred"
    category = ErrorCategory.NETWORK
    is_retryable = True


class TransportError(NetworkError):
    """Errors raised by the persistent transport."""
    code = "TRANSPORT_ERROR"
    default_message = "Transport error"
    severity = ErrorSeverity.WARNING


class HandshakeError(TransportError):
    """The transport could not establish a connection."""
    code = "HANDSHAKE_ERROR"
    default_message = "Failed to establish connection"

    def get_suggestions(self) -> List[str]:
        return [
            "Check your network connection",
            "Verify the socket URL is reachable",
        ]


class AuthenticationError(VibexError):
    """Authentication errors."""
    code = "AUTH_ERROR"
    default_message = "Authentication failed"
    category = ErrorCategory.AUTHENTICATION
    severity = ErrorSeverity.WARNING


class InputError(VibexError):
    """Standard input could not be opened or read."""
    code = "INPUT_ERROR"
    default_message = "Failed to read standard input"
    category = ErrorCategory.INPUT
    severity = ErrorSeverity.CRITICAL


class ErrorRecovery:
    """Error recovery strategies."""

    @staticmethod
    def backoff_delay(
        attempt: int,
        base_delay: float = 1.0,
        max_delay: float = 5.0,
        factor: float = 2.0,
        jitter: float = 0.0,
        rng: Optional[random.Random] = None,
    ) -> float:
        """
        Delay before retry number ``attempt`` (1-based).

        Grows as ``base_delay * factor ** (attempt - 1)`` and never exceeds
        ``max_delay``. The exponent stops growing once the delay reaches
        ``max_delay``. ``jitter`` randomizes the delay by up to that fraction
        in either direction before capping.
        """
        exponent = max(attempt, 1) - 1
        if factor > 1 and 0 < base_delay < max_delay:
            exponent = min(exponent, math.ceil(math.log(max_delay / base_delay, factor)))
        elif factor > 1:
            exponent = 0
        delay = base_delay * (factor ** exponent)
        if jitter:
            delay += (rng or random).uniform(-jitter, jitter) * delay
        return max(0.0, min(delay, max_delay))


__all__ = [
    'VibexError',
    'ErrorContext',
    'ErrorSeverity',
    'ErrorCategory',
    'ConfigurationError',
    'NetworkError',
    'TransportError',
    'HandshakeError',
    'AuthenticationError',
    'InputError',
    'ErrorRecovery',
]
