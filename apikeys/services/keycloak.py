"""
Integration with the Keycloak admin REST API.

API keys are registered as confidential clients in a dedicated realm, with
only the client-credentials grant (service account) enabled. The admin token
used to manage them is obtained from the admin realm and cached until shortly
before it expires.
"""

import time
import logging
import threading
from typing import Any, Dict, List, Optional

import requests
from flask import Flask

from .. import domain
from .exceptions import RegistrationFailed, ConcurrentModification, \
    LinkageIncomplete, RegistryUnavailable, RealmSetupFailed, \
    ConfigurationError

logger = logging.getLogger(__name__)

TOKEN_LEEWAY = 10
"""Seconds before ``expires_in`` at which a cached admin token is dropped."""


class KeycloakRegistry(object):
    """
    Client and user registry backed by a Keycloak realm.

    The underlying :class:`requests.Session` pools connections; this class
    adds the admin token and maps responses onto domain objects.
    """

    def __init__(self, server_url: str, realm: str,
                 admin_realm: str = 'master',
                 admin_client_id: str = 'admin-cli',
                 admin_client_secret: Optional[str] = None,
                 admin_username: Optional[str] = None,
                 admin_password: Optional[str] = None,
                 timeout: int = 10) -> None:
        logger.debug('New Keycloak registry at %s, realm %s',
                     server_url, realm)
        self._server_url = server_url.rstrip('/')
        self._realm = realm
        self._admin_realm = admin_realm
        self._admin_client_id = admin_client_id
        self._admin_client_secret = admin_client_secret
        self._admin_username = admin_username
        self._admin_password = admin_password
        self._timeout = timeout
        self._session = requests.Session()
        self._token: Optional[str] = None
        self._token_expires = 0.0
        self._token_lock = threading.Lock()

    @property
    def realm(self) -> str:
        """Realm in which clients are registered."""
        return self._realm

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    # Clients.

    def find_by_owner(self, owner_id: str) -> List[domain.ClientRegistration]:
        """
        Get the clients whose id starts with ``{owner_id}-``.

        Keycloak only offers a substring search on client ids, so the result
        may include clients of other owners; callers filter on the owner
        attribute.
        """
        response = self._request('GET', self._realm_url('/clients'),
                                 params={'clientId': f'{owner_id}-',
                                         'search': 'true'})
        if response.status_code != 200:
            raise RegistryUnavailable(
                f'Listing clients for {owner_id} failed:'
                f' {response.status_code} {response.text}'
            )
        return [self._to_registration(rep) for rep in response.json()]

    def get_client(self, client_id: str) \
            -> Optional[domain.ClientRegistration]:
        """Get a client by its (public) client id, if it exists."""
        response = self._request('GET', self._realm_url('/clients'),
                                 params={'clientId': client_id})
        if response.status_code != 200:
            raise RegistryUnavailable(
                f'Loading client {client_id} failed:'
                f' {response.status_code} {response.text}'
            )
        for rep in response.json():
            if rep.get('clientId') == client_id:
                return self._to_registration(rep)
        return None

    def create_client(self, client_id: str, name: str,
                      attributes: Dict[str, str]) \
            -> domain.ClientRegistration:
        """
        Register a new confidential client; Keycloak generates its secret.

        Raises
        ------
        :class:`ConcurrentModification`
            A client with ``client_id`` already exists.
        :class:`RegistrationFailed`
            Keycloak did not create the client, or its secret could not be
            read back. In the latter case the client is deleted again,
            best-effort.

        """
        representation = {
            'clientId': client_id,
            'name': name,
            'enabled': True,
            'protocol': 'openid-connect',
            'publicClient': False,
            'clientAuthenticatorType': 'client-secret',
            'serviceAccountsEnabled': True,
            'standardFlowEnabled': False,
            'implicitFlowEnabled': False,
            'directAccessGrantsEnabled': False,
            'attributes': dict(attributes),
        }
        response = self._request('POST', self._realm_url('/clients'),
                                 json=representation)
        if response.status_code == 409:
            raise ConcurrentModification(
                f'Client {client_id} already exists', status=409
            )
        if response.status_code != 201:
            logger.error('Keycloak refused client %s: %s %s', client_id,
                         response.status_code, response.text)
            raise RegistrationFailed(
                f'Could not register client {client_id}',
                status=response.status_code
            )

        location = response.headers.get('Location', '')
        internal_id = location.rstrip('/').rsplit('/', 1)[-1] or None
        if internal_id is None:
            try:
                created = self.get_client(client_id)
            except RegistryUnavailable as e:
                raise RegistrationFailed(
                    f'Client {client_id} created but could not be located',
                    status=response.status_code
                ) from e
            internal_id = created.internal_id if created else None
        if internal_id is None:
            raise RegistrationFailed(
                f'Client {client_id} created but could not be located',
                status=response.status_code
            )

        # A client whose secret never reaches the owner is unusable, and
        # would hold one of the owner's slots.
        try:
            secret = self._client_secret(client_id, internal_id)
        except (RegistrationFailed, RegistryUnavailable):
            self._discard_client(client_id, internal_id)
            raise
        return domain.ClientRegistration(
            client_id=client_id,
            name=name,
            secret=secret,
            attributes=dict(attributes),
            internal_id=internal_id
        )

    def delete_client(self, internal_id: str) -> domain.DeleteOutcome:
        """Delete a client by its Keycloak id."""
        response = self._request('DELETE',
                                 self._realm_url(f'/clients/{internal_id}'))
        if response.status_code in (200, 204):
            return domain.DeleteOutcome(domain.DeleteOutcome.DELETED,
                                        http_status=response.status_code)
        if response.status_code == 404:
            return domain.DeleteOutcome(domain.DeleteOutcome.NOT_FOUND,
                                        http_status=404)
        return domain.DeleteOutcome(domain.DeleteOutcome.FAILED,
                                    http_status=response.status_code,
                                    reason=response.text)

    # Users.

    def get_user_record(self, owner_id: str) -> Dict[str, Any]:
        """Load the owner's user representation."""
        try:
            response = self._request('GET',
                                     self._realm_url(f'/users/{owner_id}'))
        except RegistryUnavailable as e:
            raise LinkageIncomplete(f'Could not load user {owner_id}') from e
        if response.status_code != 200:
            raise LinkageIncomplete(
                f'Could not load user {owner_id}: {response.status_code}'
            )
        record: Dict[str, Any] = response.json()
        return record

    def update_user_record(self, owner_id: str,
                           record: Dict[str, Any]) -> None:
        """Replace the owner's user representation."""
        try:
            response = self._request('PUT',
                                     self._realm_url(f'/users/{owner_id}'),
                                     json=record)
        except RegistryUnavailable as e:
            raise LinkageIncomplete(f'Could not update user {owner_id}') \
                from e
        if response.status_code not in (200, 204):
            raise LinkageIncomplete(
                f'Could not update user {owner_id}: {response.status_code}'
            )

    # Realm administration.

    def check_server(self) -> int:
        """Reach the Keycloak server; get the HTTP status of its root."""
        try:
            response = self._session.get(self._server_url,
                                         timeout=self._timeout)
        except requests.exceptions.RequestException as e:
            raise RegistryUnavailable(
                f'Keycloak is not reachable at {self._server_url}: {e}'
            ) from e
        return response.status_code

    def realm_exists(self) -> bool:
        """Check whether the client realm exists."""
        response = self._request('GET', self._realm_url())
        if response.status_code == 404:
            return False
        if response.status_code != 200:
            raise RegistryUnavailable(
                f'Loading realm {self._realm} failed: {response.status_code}'
            )
        return True

    def create_realm(self) -> None:
        """Create the client realm."""
        response = self._request('POST', f'{self._server_url}/admin/realms',
                                 json={'realm': self._realm,
                                       'enabled': True})
        if response.status_code == 409:
            logger.info('Realm %s already exists', self._realm)
            return
        if response.status_code != 201:
            raise RealmSetupFailed(
                f'Could not create realm {self._realm}:'
                f' {response.status_code} {response.text}'
            )
        logger.info('Created realm %s', self._realm)

    def delete_realm(self) -> None:
        """Delete the client realm, and with it every registered client."""
        response = self._request('DELETE', self._realm_url())
        if response.status_code not in (204, 404):
            raise RealmSetupFailed(
                f'Could not delete realm {self._realm}:'
                f' {response.status_code} {response.text}'
            )
        logger.info('Deleted realm %s', self._realm)

    # Internals.

    def _realm_url(self, path: str = '') -> str:
        return f'{self._server_url}/admin/realms/{self._realm}{path}'

    def _client_secret(self, client_id: str, internal_id: str) -> str:
        response = self._request(
            'GET', self._realm_url(f'/clients/{internal_id}/client-secret')
        )
        if response.status_code != 200:
            raise RegistrationFailed(
                f'Client {client_id} created but its secret is unavailable',
                status=response.status_code
            )
        try:
            secret: str = response.json()['value']
        except (ValueError, KeyError, TypeError) as e:
            raise RegistrationFailed(
                f'Client {client_id} created but its secret is malformed',
                status=response.status_code
            ) from e
        return secret

    def _discard_client(self, client_id: str, internal_id: str) -> None:
        """Delete a half-created client, best-effort."""
        try:
            outcome = self.delete_client(internal_id)
        except RegistryUnavailable as e:
            logger.error('Could not discard client %s: %s', client_id, e)
            return
        if outcome.status == domain.DeleteOutcome.FAILED:
            logger.error('Could not discard client %s: %s %s', client_id,
                         outcome.http_status, outcome.reason)
        else:
            logger.info('Discarded client %s without a secret', client_id)

    def _to_registration(self, rep: Dict[str, Any]) \
            -> domain.ClientRegistration:
        return domain.ClientRegistration(
            client_id=rep['clientId'],
            name=rep.get('name') or '',
            secret=rep.get('secret'),
            attributes=dict(rep.get('attributes') or {}),
            internal_id=rep.get('id')
        )

    def _request(self, method: str, url: str, retry: bool = True,
                 **kwargs: Any) -> requests.Response:
        headers = {'Authorization': f'Bearer {self._get_token()}'}
        try:
            response = self._session.request(method, url, headers=headers,
                                             timeout=self._timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise RegistryUnavailable(f'{method} {url} failed: {e}') from e
        if response.status_code == 401 and retry:
            logger.debug('Admin token rejected; fetching a new one')
            self._forget_token()
            return self._request(method, url, retry=False, **kwargs)
        return response

    def _forget_token(self) -> None:
        with self._token_lock:
            self._token = None
            self._token_expires = 0.0

    def _get_token(self) -> str:
        with self._token_lock:
            if self._token and time.monotonic() < self._token_expires:
                return self._token

            token_url = (f'{self._server_url}/realms/{self._admin_realm}'
                         '/protocol/openid-connect/token')
            if self._admin_client_secret:
                payload = {'grant_type': 'client_credentials',
                           'client_id': self._admin_client_id,
                           'client_secret': self._admin_client_secret}
            else:
                payload = {'grant_type': 'password',
                           'client_id': self._admin_client_id,
                           'username': self._admin_username,
                           'password': self._admin_password}
            try:
                response = self._session.post(token_url, data=payload,
                                              timeout=self._timeout)
            except requests.exceptions.RequestException as e:
                raise RegistryUnavailable(f'Token request failed: {e}') \
                    from e
            if response.status_code != 200:
                logger.error('No admin token: %s %s', response.status_code,
                             response.text)
                raise RegistryUnavailable(
                    f'Could not obtain admin token: {response.status_code}'
                )
            data = response.json()
            self._token = data['access_token']
            expires_in = int(data.get('expires_in', 60))
            self._token_expires = \
                time.monotonic() + max(expires_in - TOKEN_LEEWAY, 0)
            return data['access_token']


def init_app(app: Flask) -> None:
    """Set default configuration parameters for an application instance."""
    config = app.config
    config.setdefault('KEYCLOAK_SERVER_URL', 'http://localhost:8080')
    config.setdefault('KEYCLOAK_REALM', 'apikeys-client-realm')
    config.setdefault('KEYCLOAK_ADMIN_REALM', 'master')
    config.setdefault('KEYCLOAK_ADMIN_CLIENT_ID', 'admin-cli')
    config.setdefault('KEYCLOAK_ADMIN_CLIENT_SECRET', None)
    config.setdefault('KEYCLOAK_ADMIN_USERNAME', None)
    config.setdefault('KEYCLOAK_ADMIN_PASSWORD', None)
    config.setdefault('KEYCLOAK_TIMEOUT', 10)


def get_registry(app: Flask) -> KeycloakRegistry:
    """Get a new registry for the Keycloak server configured on ``app``."""
    config = app.config
    if not config.get('KEYCLOAK_SERVER_URL'):
        raise ConfigurationError('KEYCLOAK_SERVER_URL is not set')
    if not config.get('KEYCLOAK_ADMIN_CLIENT_SECRET') \
            and not (config.get('KEYCLOAK_ADMIN_USERNAME')
                     and config.get('KEYCLOAK_ADMIN_PASSWORD')):
        raise ConfigurationError(
            'Set KEYCLOAK_ADMIN_CLIENT_SECRET, or both'
            ' KEYCLOAK_ADMIN_USERNAME and KEYCLOAK_ADMIN_PASSWORD'
        )
    return KeycloakRegistry(
        config['KEYCLOAK_SERVER_URL'],
        config['KEYCLOAK_REALM'],
        admin_realm=config.get('KEYCLOAK_ADMIN_REALM', 'master'),
        admin_client_id=config.get('KEYCLOAK_ADMIN_CLIENT_ID', 'admin-cli'),
        admin_client_secret=config.get('KEYCLOAK_ADMIN_CLIENT_SECRET'),
        admin_username=config.get('KEYCLOAK_ADMIN_USERNAME'),
        admin_password=config.get('KEYCLOAK_ADMIN_PASSWORD'),
        timeout=int(config.get('KEYCLOAK_TIMEOUT', 10))
    )
