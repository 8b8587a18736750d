"""
Exceptions raised by pattern-transformer.

All errors are deterministic functions of the input and the rules, so they
are raised immediately and never retried.
"""

from typing import Any, Optional


class PatternTransformerError(Exception):
    """Base class for all pattern-transformer errors."""


class InvalidInputError(PatternTransformerError, TypeError):
    """The text to transform is not a string."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Input must be a string, got {type(value).__name__}")


class InvalidRuleError(PatternTransformerError, ValueError):
    """A rule is malformed (bad pattern, bad group or not a rule at all)."""


class MissingReducerError(PatternTransformerError):
    """A pattern node was reached whose rule has no reducer."""

    def __init__(self, rule: Any):
        self.rule = rule
        super().__init__(f"No reduce function defined for rule: {rule!r}")


class RecursionLimitExceededError(PatternTransformerError, RecursionError):
    """Nested matching went deeper than the configured maximum depth."""

    def __init__(self, max_depth: int, text: Optional[str] = None):
        self.max_depth = max_depth
        self.text = text
        super().__init__(f"Maximum match depth of {max_depth} exceeded")
