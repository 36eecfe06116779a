# trial_notifier/errors.py


class TrialNotifierError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(TrialNotifierError):
    """Bad or missing configuration. Raised at startup, never per run."""


class StoreError(TrialNotifierError):
    """The tenant store could not be read or written."""


__all__ = ["TrialNotifierError", "ConfigError", "StoreError"]
