from dataclasses import dataclass
from typing import Optional

from ..exceptions import InvalidArgumentError

DEFAULT_MAX_PATTERNS = 32


def check_window(interval_ms: int, duration_ms: int) -> None:
    """Reject negative values and a duration shorter than one interval."""
    if interval_ms < 0:
        raise InvalidArgumentError("sample_interval_ms must not be negative")
    if duration_ms < 0:
        raise InvalidArgumentError("duration_ms must not be negative")
    if duration_ms and interval_ms and duration_ms < interval_ms:
        raise InvalidArgumentError(
            f"Duration {duration_ms}ms cannot be lesser than interval {interval_ms}ms"
        )


@dataclass
class SessionConfig:
    """Configuration for a sampling session.

    ``sample_interval_ms == 0`` means the session is only sampled through
    explicit ``sample()`` calls; ``duration_ms == 0`` means it never expires.
    Sessions keep their own copy, so changing a config after
    ``SessionRegistry.create`` does not affect sessions made from it.
    """

    name: Optional[str] = None
    sample_interval_ms: int = 0
    duration_ms: int = 0
    max_patterns: int = DEFAULT_MAX_PATTERNS

    def __post_init__(self):
        check_window(self.sample_interval_ms, self.duration_ms)
        if self.max_patterns <= 0:
            raise InvalidArgumentError("max_patterns must be positive")

    @classmethod
    def manual(cls, name: Optional[str] = None) -> "SessionConfig":
        """Session sampled only on explicit sample() calls."""
        return cls(name=name)

    @classmethod
    def periodic(
        cls, interval_ms: int, duration_ms: int = 0, name: Optional[str] = None
    ) -> "SessionConfig":
        """Session sampled by the poll dispatcher every ``interval_ms``."""
        if interval_ms <= 0:
            raise InvalidArgumentError("Periodic sessions need a positive interval")
        return cls(name=name, sample_interval_ms=interval_ms, duration_ms=duration_ms)

    def with_interval(self, interval_ms: int) -> "SessionConfig":
        """Override the sample interval.

        Args:
            interval_ms: Interval in milliseconds (0 = manual only)

        Returns:
            Self for method chaining
        """
        check_window(interval_ms, self.duration_ms)
        self.sample_interval_ms = interval_ms
        return self

    def with_duration(self, duration_ms: int) -> "SessionConfig":
        """Override the total duration.

        Args:
            duration_ms: Duration in milliseconds (0 = unbounded)

        Returns:
            Self for method chaining
        """
        check_window(self.sample_interval_ms, duration_ms)
        self.duration_ms = duration_ms
        return self

    def with_name(self, name: str) -> "SessionConfig":
        self.name = name
        return self
