"""
In-memory stand-in for the Keycloak registry.

Enabled with ``KEYCLOAK_FAKE``. Useful for testing, dev, and beta. Nothing
survives a restart.
"""

import secrets
import uuid
import logging
import threading
from copy import deepcopy
from typing import Any, Dict, List, Optional

from .. import domain
from .exceptions import ConcurrentModification, LinkageIncomplete

logger = logging.getLogger(__name__)


class FakeRegistry(object):
    """Holds client registrations and user records in dicts."""

    def __init__(self) -> None:
        self._clients: Dict[str, domain.ClientRegistration] = {}
        self._users: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def find_by_owner(self, owner_id: str) -> List[domain.ClientRegistration]:
        prefix = f'{owner_id}-'
        with self._lock:
            return [client for client_id, client in self._clients.items()
                    if client_id.startswith(prefix)]

    def get_client(self, client_id: str) \
            -> Optional[domain.ClientRegistration]:
        with self._lock:
            return self._clients.get(client_id)

    def create_client(self, client_id: str, name: str,
                      attributes: Dict[str, str]) \
            -> domain.ClientRegistration:
        with self._lock:
            if client_id in self._clients:
                raise ConcurrentModification(
                    f'Client {client_id} already exists', status=409
                )
            client = domain.ClientRegistration(
                client_id=client_id,
                name=name,
                secret=secrets.token_urlsafe(24),
                attributes=dict(attributes),
                internal_id=str(uuid.uuid4())
            )
            self._clients[client_id] = client
        logger.debug('Registered fake client %s', client_id)
        return client

    def delete_client(self, internal_id: str) -> domain.DeleteOutcome:
        with self._lock:
            for client_id, client in self._clients.items():
                if client.internal_id == internal_id:
                    del self._clients[client_id]
                    return domain.DeleteOutcome(domain.DeleteOutcome.DELETED)
        return domain.DeleteOutcome(domain.DeleteOutcome.NOT_FOUND)

    def get_user_record(self, owner_id: str) -> Dict[str, Any]:
        if not owner_id:
            raise LinkageIncomplete('No owner given')
        with self._lock:
            record = self._users.setdefault(
                owner_id, {'id': owner_id, 'attributes': {}}
            )
            return deepcopy(record)

    def update_user_record(self, owner_id: str,
                           record: Dict[str, Any]) -> None:
        with self._lock:
            self._users[owner_id] = deepcopy(record)
