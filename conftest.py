"""Shared pytest fixtures for the API key service."""

import pytest
import jwt

from apikeys.factory import create_web_app

JWT_SECRET = 'a-test-only-secret-that-is-long-enough-for-hs256'


@pytest.fixture()
def secret():
    return JWT_SECRET


@pytest.fixture()
def app(secret):
    app = create_web_app()
    app.config['TESTING'] = True
    app.config['KEYCLOAK_FAKE'] = True
    app.config['JWT_SECRET'] = secret
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def auth_headers(secret):
    """Build request headers carrying a bearer token for a user."""
    def _headers(user_id):
        token = jwt.encode({'user_id': user_id}, secret, algorithm='HS256')
        return {'Authorization': f'Bearer {token}'}
    return _headers
