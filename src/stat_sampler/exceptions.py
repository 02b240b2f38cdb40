"""Custom exceptions used by the stat_sampler package."""


class SamplerError(RuntimeError):
    """Base class for sampler errors."""


class InvalidArgumentError(SamplerError, ValueError):
    """Raised for missing callbacks, malformed config or foreign handles."""


class AlreadyActiveError(SamplerError):
    """Raised when starting a session that is already active."""


class AlreadyStoppedError(SamplerError):
    """Raised when stopping a session that is not active."""


class NotStartedError(SamplerError):
    """Raised when sampling a session that is not active."""


class SessionTimeoutError(SamplerError, TimeoutError):
    """Raised when sampling a session whose duration has elapsed."""


class OutOfHandlesError(SamplerError):
    """Raised when a fixed-capacity arena cannot hand out another slot."""


class TooManyPatternsError(SamplerError):
    """Raised when a filter exceeds the configured pattern limit."""


class NotFoundError(SamplerError, LookupError):
    """Raised when a handle, source or stat id cannot be resolved."""


class NotSupportedError(SamplerError):
    """Raised when a source lacks an optional capability."""
