"""
Error taxonomy for the learning engine.

None of these are fatal to the game loop: each one is caught at the
boundary of the operation that raised it and degrades to "keep the previous
state" or "skip this unit of work".
"""


class BrainError(Exception):
    """Base class for learning-engine errors."""


class ConfigurationError(BrainError):
    """A persisted model carries a missing or malformed config/parameter set."""


class ShapeMismatchError(BrainError):
    """Matrix dimensions do not line up for a multiply or add."""

    def __init__(self, operation: str, left_shape, right_shape):
        super().__init__(
            f"Invalid matrix dimensions for {operation}: {tuple(left_shape)} vs {tuple(right_shape)}"
        )
        self.operation = operation
        self.left_shape = tuple(left_shape)
        self.right_shape = tuple(right_shape)


class InvalidExperienceError(BrainError):
    """A training sample is missing its state, action or target."""


class UnmappedActionError(BrainError):
    """An action label has no output index and no default index is configured."""
