"""Exception types raised by the automation layer."""


class AutomationError(Exception):
    """Base class for automation failures that are recorded, never raised to callers."""


class ActionConfigError(AutomationError):
    """Action parameters are missing or invalid for the configured action."""


class ResolutionError(AutomationError):
    """A required entity could not be derived from the payload or found in the store."""


class RuleValidationError(AutomationError):
    """Rule create/update input failed validation.

    ``errors`` maps the offending field to a human readable message.
    """

    def __init__(self, errors):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{k}: {v}" for k, v in self.errors.items()))
