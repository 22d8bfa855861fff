"""Alert engine exceptions."""


class AlertEngineError(Exception):
    """Base class for alert engine errors."""


class RuleStoreError(AlertEngineError):
    """Notification rules could not be read or written."""


class RuleNotFoundError(RuleStoreError):
    """No notification rule exists with the requested id."""

    def __init__(self, rule_id: str):
        super().__init__(f"Notification rule not found: {rule_id}")
        self.rule_id = rule_id


class TransactionSourceError(AlertEngineError):
    """Open transactions could not be fetched."""


class MalformedScheduleError(AlertEngineError):
    """A rule's schedule cannot be interpreted."""
