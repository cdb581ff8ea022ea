"""Netlearning exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from NetLearningError for easy catching.
"""

from __future__ import annotations


class NetLearningError(Exception):
    """Base exception for all netlearning errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code.
    """

    code: str = "netlearning_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ShapeMismatchError(NetLearningError):
    """A dimension or length invariant was violated.

    Raised at state construction or at fit entry. Never recovered internally.

    Attributes:
        field: Name of the offending argument.
        expected: Expected size or shape.
        actual: Size or shape that was found.
    """

    code: str = "shape_mismatch"

    def __init__(self, field: str, expected: object, actual: object) -> None:
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(f"{field}: expected {expected}, found {actual}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "expected": str(self.expected),
                "actual": str(self.actual),
                "message": self.message,
            }
        }


class InvalidConfigurationError(NetLearningError):
    """Unknown relational learner or inference selector.

    Only raised by the factories in strict mode. Otherwise the selector is
    replaced by ``fallback`` and the message is emitted as a warning.

    Attributes:
        selector: Which option was being resolved ("learner" or "inference").
        value: The unrecognized value.
        fallback: The value substituted for it.
    """

    code: str = "invalid_configuration"

    def __init__(self, selector: str, value: object, fallback: str) -> None:
        self.selector = selector
        self.value = value
        self.fallback = fallback
        super().__init__(f"Unknown {selector} {value!r}. Defaulting to {fallback!r}.")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to a serializable dictionary."""
        return {
            "error": {
                "code": self.code,
                "selector": self.selector,
                "value": str(self.value),
                "fallback": self.fallback,
                "message": self.message,
            }
        }


class UnknownSelectorWarning(UserWarning):
    """Warning category emitted when a selector falls back to its default."""
