"""
Lifecycle of an owner's applications (API keys).

Each operation starts from what the registry currently holds for the owner;
nothing is cached between calls. Creating an application is a
read-then-write sequence: the owner's registrations are loaded, the quota and
the name are checked, the next free index is derived, and only then is the
client registered. Those steps run under a lock keyed on the owner, which
serializes concurrent creates within this process. Across processes, the
registry's refusal of an already-registered client id is what keeps two
applications from sharing an id; that refusal surfaces as
:class:`ConcurrentModification`.
"""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from flask import Flask, current_app
from pytz import UTC

from .. import domain
from ..indexing import next_index, make_client_id, parse_client_id
from . import keycloak
from .fake import FakeRegistry
from .exceptions import QuotaExceeded, DuplicateName, LinkageIncomplete, \
    RegistryUnavailable

logger = logging.getLogger(__name__)

MAX_APPLICATIONS_PER_OWNER = 2

LOCK_STRIPES = 64

Registry = Union[keycloak.KeycloakRegistry, FakeRegistry]


class ApplicationService(object):
    """Creates, lists, and deletes applications in a client registry."""

    def __init__(self, registry: Registry,
                 max_applications: int = MAX_APPLICATIONS_PER_OWNER) -> None:
        self.registry = registry
        self.max_applications = max_applications
        self._locks = [threading.Lock() for _ in range(LOCK_STRIPES)]

    def list_applications_by_owner(self, owner_id: str) \
            -> List[domain.Application]:
        """
        Get the applications currently registered for an owner.

        Registrations that do not carry ``owner_id`` in their owner attribute,
        or whose client id does not parse as one of the owner's, are ignored.

        Parameters
        ----------
        owner_id : str

        Returns
        -------
        list
            Items are :class:`domain.Application` instances, ordered by index.
            Empty if the owner has none.

        """
        applications = []
        for registration in self.registry.find_by_owner(owner_id):
            application = _to_application(owner_id, registration)
            if application is not None:
                applications.append(application)
        return sorted(applications, key=lambda application: application.index)

    def create_application(self, owner_id: str, name: str) \
            -> domain.Application:
        """
        Register a new application for an owner.

        Parameters
        ----------
        owner_id : str
        name : str
            Must not match (exactly) the name of another of the owner's
            applications.

        Returns
        -------
        :class:`domain.Application`
            Includes the client secret, which cannot be retrieved again. If
            the owner's user record could not be linked to the new client,
            ``linked`` is False; the application is usable regardless.

        Raises
        ------
        :class:`QuotaExceeded`
        :class:`DuplicateName`
        :class:`RegistrationFailed`
            Also :class:`ConcurrentModification`, if the client id was taken
            in the meantime.

        """
        with self._lock_for(owner_id):
            live = self.list_applications_by_owner(owner_id)
            if len(live) >= self.max_applications:
                raise QuotaExceeded(
                    f'User {owner_id} already has {len(live)} applications;'
                    f' the limit is {self.max_applications}'
                )
            if any(application.name == name for application in live):
                raise DuplicateName(
                    f'User {owner_id} already has an application named'
                    f' {name!r}'
                )
            index = next_index(application.index for application in live)
            client_id = make_client_id(owner_id, index)
            issued = int(datetime.now(tz=UTC).timestamp())
            attributes = {
                domain.OWNER_ATTRIBUTE: owner_id,
                domain.CREATED_ATTRIBUTE: str(issued),
            }
            registration = self.registry.create_client(client_id, name,
                                                       attributes)
        logger.info('Registered application %s for user %s',
                    client_id, owner_id)

        keep = [application.client_id for application in live]
        linked = self._link(owner_id, client_id, keep)
        return domain.Application(
            id=client_id,
            name=name,
            client_id=client_id,
            index=index,
            owner_id=owner_id,
            secret=registration.secret,
            created=domain.created_from_attributes(attributes),
            linked=linked
        )

    def delete_application(self, owner_id: str, application_id: str) \
            -> Optional[Dict[str, Any]]:
        """
        Delete one of an owner's applications.

        Deleting an application that does not exist, or that belongs to
        someone else, succeeds without doing anything.

        Returns
        -------
        dict or None
            A diagnostic if the registry reported a failure to delete;
            otherwise None.

        """
        try:
            parsed_owner, _ = parse_client_id(application_id)
        except ValueError:
            logger.debug('Not an application id: %s', application_id)
            return None
        if parsed_owner != owner_id:
            logger.debug('Application %s does not belong to %s',
                         application_id, owner_id)
            return None

        registration = self.registry.get_client(application_id)
        if registration is None or registration.owner_id != owner_id \
                or registration.internal_id is None:
            logger.debug('No application %s for user %s; nothing to delete',
                         application_id, owner_id)
            return None

        outcome = self.registry.delete_client(registration.internal_id)
        if outcome.status == domain.DeleteOutcome.FAILED:
            logger.warning('Registry failed to delete %s: %s %s',
                           application_id, outcome.http_status,
                           outcome.reason)
            return {'application_id': application_id,
                    'status': outcome.http_status,
                    'reason': outcome.reason}
        logger.info('Deleted application %s for user %s',
                    application_id, owner_id)
        return None

    def _lock_for(self, owner_id: str) -> threading.Lock:
        return self._locks[hash(owner_id) % len(self._locks)]

    def _link(self, owner_id: str, client_id: str,
              keep: List[str]) -> bool:
        """Record ``client_id`` on the owner's user record, best-effort."""
        try:
            record = self.registry.get_user_record(owner_id)
            attributes = record.get('attributes') or {}
            linked = [linked_id for linked_id
                      in attributes.get(domain.LINKED_APPLICATIONS_ATTRIBUTE,
                                        [])
                      if linked_id in keep]
            linked.append(client_id)
            attributes[domain.LINKED_APPLICATIONS_ATTRIBUTE] = linked
            record['attributes'] = attributes
            self.registry.update_user_record(owner_id, record)
        except (LinkageIncomplete, RegistryUnavailable) as e:
            logger.warning('Application %s registered, but user %s was not'
                           ' linked to it: %s', client_id, owner_id, e)
            return False
        return True


def _to_application(owner_id: str,
                    registration: domain.ClientRegistration) \
        -> Optional[domain.Application]:
    if registration.owner_id != owner_id:
        return None
    try:
        parsed_owner, index = parse_client_id(registration.client_id)
    except ValueError:
        return None
    if parsed_owner != owner_id:
        return None
    return domain.Application(
        id=registration.client_id,
        name=registration.name,
        client_id=registration.client_id,
        index=index,
        owner_id=owner_id,
        secret=registration.secret,
        created=domain.created_from_attributes(registration.attributes or {})
    )


_service_lock = threading.Lock()


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    app.config.setdefault('MAX_APPLICATIONS_PER_USER',
                          MAX_APPLICATIONS_PER_OWNER)
    app.config.setdefault('KEYCLOAK_FAKE', False)
    keycloak.init_app(app)


def get_service(app: Flask) -> ApplicationService:
    """Get a new :class:`ApplicationService` configured for ``app``."""
    registry: Registry
    if app.config.get('KEYCLOAK_FAKE'):
        logger.info('Using the in-memory registry')
        registry = FakeRegistry()
    else:
        registry = keycloak.get_registry(app)
    return ApplicationService(
        registry,
        max_applications=int(app.config.get('MAX_APPLICATIONS_PER_USER',
                                            MAX_APPLICATIONS_PER_OWNER))
    )


def current_service() -> ApplicationService:
    """
    Get/create the :class:`ApplicationService` for the current app.

    One service is kept per app, so that the owner locks and the cached
    admin token are shared between requests.
    """
    app = current_app._get_current_object()
    with _service_lock:
        if 'apikeys' not in app.extensions:
            app.extensions['apikeys'] = get_service(app)
        service: ApplicationService = app.extensions['apikeys']
    return service
