"""Exception types for the grain bin core."""


class GrainbinError(Exception):
    """Base class for all grainbin errors."""


class ConfigurationError(GrainbinError, ValueError):
    """Raised when system settings would break fill or conversion math."""


class ValidationError(GrainbinError, ValueError):
    """Raised when an operator input is rejected before any mutation."""


class BinNotFoundError(GrainbinError, KeyError):
    """Raised when an operation names a bin that does not exist."""

    def __init__(self, bin_id: object) -> None:
        super().__init__(bin_id)
        self.bin_id = bin_id

    def __str__(self) -> str:
        return f"Unknown bin: {self.bin_id}"


class StoreError(GrainbinError):
    """Raised by persistence backends when a load or save fails."""
