"""Flask configuration."""

import os

SERVER_NAME = os.environ.get('APIKEYS_SERVER_NAME')

LOGLEVEL = os.environ.get('LOGLEVEL', 'INFO')
LOG_JSON = bool(int(os.environ.get('LOG_JSON', '1')))
"""If 1, log records are rendered as JSON; otherwise as plain text."""

KEYCLOAK_SERVER_URL = os.environ.get('KEYCLOAK_SERVER_URL',
                                     'http://localhost:8080')
KEYCLOAK_REALM = os.environ.get('KEYCLOAK_REALM', 'apikeys-client-realm')
"""Realm in which API key clients are registered."""

KEYCLOAK_ADMIN_REALM = os.environ.get('KEYCLOAK_ADMIN_REALM', 'master')
"""Realm against which the admin credentials below are checked."""

KEYCLOAK_ADMIN_CLIENT_ID = os.environ.get('KEYCLOAK_ADMIN_CLIENT_ID',
                                          'admin-cli')
KEYCLOAK_ADMIN_CLIENT_SECRET = os.environ.get('KEYCLOAK_ADMIN_CLIENT_SECRET')
"""If set, the admin token is obtained with the client-credentials grant."""

KEYCLOAK_ADMIN_USERNAME = os.environ.get('KEYCLOAK_ADMIN_USERNAME')
KEYCLOAK_ADMIN_PASSWORD = os.environ.get('KEYCLOAK_ADMIN_PASSWORD')
"""Used with the password grant when no admin client secret is set."""

KEYCLOAK_TIMEOUT = int(os.environ.get('KEYCLOAK_TIMEOUT', '10'))
"""Seconds to wait on any single call to the Keycloak admin API."""

KEYCLOAK_FAKE = bool(int(os.environ.get('KEYCLOAK_FAKE', '0')))
"""Use the in-memory registry instead of a Keycloak server.

Useful for testing and dev."""

KEYCLOAK_RESET_REALM = bool(int(os.environ.get('KEYCLOAK_RESET_REALM', '0')))
"""If 1, ``setup-realm`` deletes and recreates the client realm."""

MAX_APPLICATIONS_PER_USER = int(os.environ.get('MAX_APPLICATIONS_PER_USER',
                                               '2'))

JWT_SECRET = os.environ.get('JWT_SECRET', 'foosecret')
"""Used to verify the bearer token that identifies the requesting user."""
