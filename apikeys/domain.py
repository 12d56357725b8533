"""Core domain classes for the API key service."""

from datetime import datetime
from typing import NamedTuple, Optional, Dict, Any

from pytz import UTC

OWNER_ATTRIBUTE = 'user_id'
"""Client attribute recording the owner of the registration."""

CREATED_ATTRIBUTE = 'client.secret.creation.time'
"""Client attribute recording when the secret was issued (epoch seconds)."""

LINKED_APPLICATIONS_ATTRIBUTE = 'applications'
"""User attribute listing the client ids linked to an owner."""


class ClientRegistration(NamedTuple):
    """A client as registered with the identity provider."""

    client_id: str
    """Public identifier of the client, ``{owner_id}-{index}``."""

    name: str
    """Display name of the client."""

    secret: Optional[str] = None
    """Client secret, generated by the identity provider."""

    attributes: Optional[Dict[str, str]] = None
    """Free-form string attributes stored on the client."""

    internal_id: Optional[str] = None
    """The identity provider's own identifier for the client record."""

    @property
    def owner_id(self) -> Optional[str]:
        """The owner recorded on the registration, if any."""
        return (self.attributes or {}).get(OWNER_ATTRIBUTE)


class Application(NamedTuple):
    """A named API credential belonging to one owner."""

    id: str
    """``{owner_id}-{index}``; identical to :attr:`client_id`."""

    name: str
    """Label chosen by the owner; unique among the owner's applications."""

    client_id: str
    """Client identifier in the identity provider."""

    index: int
    """Distinguishes the owner's concurrently held applications."""

    owner_id: str

    secret: Optional[str] = None
    """Only ever populated in the result of creating the application."""

    created: Optional[datetime] = None
    """When the client secret was issued."""

    linked: bool = True
    """False if the owner's user record could not be updated on creation."""


class DeleteOutcome(NamedTuple):
    """Result reported by the registry for a delete request."""

    DELETED = 'deleted'
    NOT_FOUND = 'not_found'
    FAILED = 'failed'

    status: str
    """One of :attr:`DELETED`, :attr:`NOT_FOUND`, :attr:`FAILED`."""

    http_status: Optional[int] = None
    reason: Optional[str] = None


def created_from_attributes(attributes: Dict[str, str]) -> Optional[datetime]:
    """Parse the secret creation time out of client attributes."""
    raw = attributes.get(CREATED_ATTRIBUTE)
    if not raw:
        return None
    try:
        return datetime.fromtimestamp(int(raw), tz=UTC)
    except (TypeError, ValueError, OverflowError):
        return None


def to_dict(application: Application, include_secret: bool = False) \
        -> Dict[str, Any]:
    """Render an :class:`Application` for a JSON response."""
    data: Dict[str, Any] = {
        'id': application.id,
        'client_id': application.client_id,
        'name': application.name,
        'index': application.index,
        'created': application.created.isoformat()
        if application.created else None,
    }
    if include_secret:
        data['client_secret'] = application.secret
        data['linked'] = application.linked
    return data
