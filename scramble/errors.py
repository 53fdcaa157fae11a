"""Errors raised by the round engine."""


class ScrambleError(Exception):
    """Base class for engine errors."""

    code = 'SCRAMBLE_ERROR'


class InvalidState(ScrambleError):
    """Operation attempted on a round that is not active."""

    code = 'INVALID_STATE'


class HintBudgetExceeded(ScrambleError):
    """All hints for the round have already been used."""

    code = 'HINT_BUDGET_EXCEEDED'


class ValidationFailed(ScrambleError):
    """Malformed input, e.g. a hint level outside 1-3."""

    code = 'VALIDATION_FAILED'


class NotFound(ScrambleError):
    """Unknown player or round."""

    code = 'NOT_FOUND'
