# decisions/exceptions.py


class DecisionError(Exception):
    """Base class for decision ledger and reward engine errors."""

    pass


class FeedbackAlreadyRecordedError(DecisionError):
    """Raised when feedback is written to a decision that already has it."""

    pass


class ImmutableFieldError(DecisionError):
    """Raised when a patch touches a field fixed at creation time."""

    pass


class UnknownAgentTypeError(DecisionError):
    """Raised when no calculator or weight table exists for an agent type."""

    pass


class WeightTableMismatchError(DecisionError):
    """Raised when a weight table does not have the shape of the component tree."""

    pass
