"""
Error Handling

Exception taxonomy for the recording pipeline and a centralized reporter
that turns failures into user-friendly messages with actionable solutions.
"""

import time
import logging
from typing import Dict, List, Optional, Any
from dataclasses import dataclass, field
from enum import Enum

log = logging.getLogger(__name__)


class KeySynthError(Exception):
    """Base class for all keysynth errors"""


class UnavailableError(KeySynthError):
    """Capture device or audio output cannot be acquired"""


class DecodeError(KeySynthError):
    """Raw audio container header is malformed"""


class FormatError(KeySynthError):
    """Unsupported channel count, bit depth or sample encoding"""


class CaptureTimeoutError(KeySynthError):
    """Capture device never delivered its finished notification"""


class EncodeError(KeySynthError):
    """MP3 encoder library rejected the audio"""


class ErrorSeverity(Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass
class ErrorContext:
    """Context information for a reported error"""
    error: Exception
    context: str
    severity: ErrorSeverity
    user_message: str
    solutions: List[str]
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class ErrorReporter:
    """Reports each failure once and keeps statistics for the session"""

    def __init__(self, max_history: int = 100):
        self.error_counts: Dict[str, int] = {}
        self.error_history: List[ErrorContext] = []
        self.max_history = max_history

    def report(self, error: Exception, context: str,
               severity: ErrorSeverity = ErrorSeverity.MEDIUM,
               details: Optional[Dict[str, Any]] = None) -> ErrorContext:
        """
        Report an error

        Args:
            error: The exception that occurred
            context: Where the error occurred (e.g. 'recording')
            severity: Error severity level
            details: Additional context details

        Returns:
            The ErrorContext that was logged and stored
        """
        self.error_counts[context] = self.error_counts.get(context, 0) + 1

        user_message, solutions = self._analyze_error(error)
        error_ctx = ErrorContext(
            error=error,
            context=context,
            severity=severity,
            user_message=user_message,
            solutions=solutions,
            details=details or {},
        )

        self._log_error(error_ctx)
        self.error_history.append(error_ctx)
        if len(self.error_history) > self.max_history:
            self.error_history.pop(0)

        return error_ctx

    def format_error(self, error_ctx: ErrorContext) -> str:
        """Format error for user display with solutions"""
        width = 74
        lines = ["╔" + "═" * width + "╗"]
        lines.append(f"║  {('Error: ' + error_ctx.user_message)[:width - 3]:<{width - 2}}║")
        lines.append("╠" + "═" * width + "╣")
        lines.append(f"║  {str(error_ctx.error)[:width - 3]:<{width - 2}}║")

        if error_ctx.solutions:
            lines.append("╠" + "═" * width + "╣")
            lines.append(f"║  {'Solution(s):':<{width - 2}}║")
            for i, solution in enumerate(error_ctx.solutions[:3], 1):
                text = f"  {i}. {solution}"
                lines.append(f"║  {text[:width - 3]:<{width - 2}}║")

        if error_ctx.details:
            lines.append("╠" + "═" * width + "╣")
            for key, value in list(error_ctx.details.items())[:5]:
                text = f"  {key}: {value}"
                lines.append(f"║  {text[:width - 3]:<{width - 2}}║")

        lines.append("╚" + "═" * width + "╝")
        return "\n".join(lines)

    def get_error_statistics(self) -> Dict[str, Any]:
        """Get error statistics for monitoring"""
        return {
            'total_errors': sum(self.error_counts.values()),
            'error_counts': dict(self.error_counts),
            'recent_errors': len([e for e in self.error_history
                                  if e.timestamp > (time.time() - 3600)]),
        }

    def reset_statistics(self):
        self.error_counts.clear()
        self.error_history.clear()

    def _analyze_error(self, error: Exception) -> tuple[str, List[str]]:
        """Generate a user-friendly message and solutions for an error"""
        if isinstance(error, UnavailableError):
            return (
                "Audio Output Unavailable",
                [
                    "Check that an output device is connected and not in exclusive use",
                    "List devices with: python -m sounddevice",
                    "Set audio.output_device in the config file",
                ],
            )
        if isinstance(error, CaptureTimeoutError):
            return (
                "Recording Did Not Finish",
                [
                    "The audio device stopped delivering data before the recording ended",
                    "Increase recording.finish_timeout in the config file",
                ],
            )
        if isinstance(error, DecodeError):
            return (
                "Captured Audio Is Corrupt",
                [
                    "The captured stream has an unreadable header",
                    "Try recording again",
                ],
            )
        if isinstance(error, FormatError):
            return (
                "Unsupported Audio Format",
                [
                    "Recording requires mono 16-bit PCM audio",
                    "Check audio.sample_rate against the supported MP3 rates",
                ],
            )
        if isinstance(error, EncodeError):
            return (
                "MP3 Encoding Failed",
                [
                    "Check recording.bit_rate and audio.sample_rate in the config file",
                    "Run with --verbose for more detail",
                ],
            )
        if isinstance(error, PermissionError):
            return (
                "Permission Denied",
                [
                    "Add yourself to the 'input' group: sudo usermod -aG input $USER",
                    "Log out and log back in (or reboot)",
                ],
            )
        if isinstance(error, OSError):
            return (
                "File System Error",
                [
                    "Check that the recording directory exists and is writable",
                    "Check available disk space",
                ],
            )
        return (
            "Unexpected Error",
            ["Run with --verbose for more detail"],
        )

    def _log_error(self, error_ctx: ErrorContext):
        message = f"[{error_ctx.context}] {error_ctx.user_message}: {error_ctx.error}"
        if error_ctx.severity in (ErrorSeverity.HIGH, ErrorSeverity.CRITICAL):
            log.critical(message)
        elif error_ctx.severity == ErrorSeverity.MEDIUM:
            log.error(message)
        else:
            log.warning(message)
