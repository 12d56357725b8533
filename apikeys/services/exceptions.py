"""Provides exceptions raised by the API key service and its registries."""

from typing import Optional


class QuotaExceeded(RuntimeError):
    """The owner already holds the maximum number of applications."""


class DuplicateName(RuntimeError):
    """The owner already holds an application with the requested name."""


class RegistrationFailed(RuntimeError):
    """The identity provider did not register the client."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super(RegistrationFailed, self).__init__(message)
        self.status = status
        """HTTP status reported by the identity provider, if any."""


class ConcurrentModification(RegistrationFailed):
    """The client id was registered in the meantime by another request."""


class LinkageIncomplete(RuntimeError):
    """The owner's user record could not be linked to a new application."""


class RegistryUnavailable(RuntimeError):
    """The identity provider could not be reached, or failed a read."""


class RealmSetupFailed(RuntimeError):
    """The client realm could not be created or deleted."""


class ConfigurationError(RuntimeError):
    """Raised when a required service parameter is missing."""
