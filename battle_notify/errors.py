"""Exception taxonomy for the notification engine."""

from typing import Any, Optional


class BattleNotifyError(Exception):
    """Base class for engine errors."""
    pass


class ConfigurationError(BattleNotifyError):
    """Raised when a rule descriptor cannot be turned into a rule.

    Covers unknown condition kinds, unknown target names and descriptors
    whose shape matches no rule kind. The registry logs and skips the
    offending descriptor.
    """

    def __init__(self, message: str, descriptor: Optional[Any] = None):
        super().__init__(message)
        self.descriptor = descriptor


class EvaluationError(BattleNotifyError):
    """Describes a failure while checking one target of one rule.

    Built for the error log entry; the rule carries on with its other
    targets and nothing is raised.
    """

    def __init__(self, rule: str, target: str, cause: Exception):
        super().__init__(f"{rule}: error while checking target {target}: {cause!r}")
        self.rule = rule
        self.target = target
        self.cause = cause
