"""Exceptions raised by the King controller and its collaborators."""


class KingError(Exception):
    """Base class for all king-bridge errors."""

    pass


# Precondition errors: raised synchronously, never retried.


class KingPreconditionError(KingError):
    """Operation is not valid in the current state."""

    pass


class MissionConfigMissingError(KingPreconditionError):
    """The mission prompt file King needs to start does not exist."""

    pass


class KingAlreadyRunningError(KingPreconditionError):
    pass


class KingNotRunningError(KingPreconditionError):
    pass


class ExchangeInProgressError(KingPreconditionError):
    """A message was sent while the previous one is still waiting for its response."""

    pass


class NoSelectionPromptError(KingPreconditionError):
    pass


class OptionIndexError(KingPreconditionError, IndexError):
    pass


# Timeout errors: callers can retry or surface them differently.


class KingTimeoutError(KingError, TimeoutError):
    pass


class ReadinessTimeoutError(KingTimeoutError):
    """King never showed its idle prompt after launch."""

    pass


class ResponseTimeoutError(KingTimeoutError):
    """No end marker appeared in the conversation log before the deadline."""

    pass


class ExchangeCancelledError(KingError):
    """The wait for a response was cancelled because King was stopped."""

    pass
