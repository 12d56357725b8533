"""Provides the HTTP API for managing a user's applications."""

import logging
from http import HTTPStatus

import jwt
from flask import Blueprint, Response, current_app, jsonify, request
from werkzeug.exceptions import BadRequest, Unauthorized, Conflict, \
    BadGateway, ServiceUnavailable, InternalServerError

from . import domain
from .services.applications import current_service
from .services.exceptions import QuotaExceeded, DuplicateName, \
    RegistrationFailed, ConcurrentModification, RegistryUnavailable, \
    ConfigurationError

logger = logging.getLogger(__name__)

blueprint = Blueprint('apikeys', __name__, url_prefix='')


@blueprint.route('/status', methods=['GET'])
def service_status() -> Response:
    """Liveness check."""
    return jsonify({'status': 'ok'})


@blueprint.route('/applications', methods=['GET'])
def list_applications() -> Response:
    """List the requesting user's applications, without their secrets."""
    owner_id = _authenticated_owner()
    try:
        applications = current_service().list_applications_by_owner(owner_id)
    except RegistryUnavailable as e:
        logger.error('Could not list applications for %s: %s', owner_id, e)
        raise ServiceUnavailable('Identity provider unavailable') from e
    return jsonify([domain.to_dict(app) for app in applications])


@blueprint.route('/applications', methods=['POST'])
def create_application() -> Response:
    """Create an application. The response is the only copy of its secret."""
    owner_id = _authenticated_owner()
    payload = request.get_json(silent=True) or {}
    name = payload.get('name') if isinstance(payload, dict) else None
    if not isinstance(name, str) or not name.strip():
        raise BadRequest('A non-empty application name is required')

    try:
        application = current_service().create_application(owner_id, name)
    except (QuotaExceeded, DuplicateName) as e:
        logger.debug('Refused to create %r for %s: %s', name, owner_id, e)
        raise BadRequest(str(e)) from e
    except ConcurrentModification as e:
        logger.warning('Concurrent create for %s: %s', owner_id, e)
        raise Conflict(str(e)) from e
    except RegistrationFailed as e:
        logger.error('Registration failed for %s: %s', owner_id, e)
        if e.status is not None and 400 <= e.status < 500:
            raise BadRequest(str(e)) from e
        raise BadGateway(str(e)) from e
    except RegistryUnavailable as e:
        logger.error('Could not create application for %s: %s', owner_id, e)
        raise ServiceUnavailable('Identity provider unavailable') from e

    response: Response = jsonify(domain.to_dict(application,
                                                include_secret=True))
    response.status_code = HTTPStatus.CREATED
    return response


@blueprint.route('/applications/<application_id>', methods=['DELETE'])
def delete_application(application_id: str) -> Response:
    """Delete an application. Deleting a missing application succeeds."""
    owner_id = _authenticated_owner()
    try:
        diagnostic = current_service().delete_application(owner_id,
                                                          application_id)
    except RegistryUnavailable as e:
        logger.error('Could not delete %s: %s', application_id, e)
        raise ServiceUnavailable('Identity provider unavailable') from e
    if diagnostic:
        return jsonify({'diagnostic': diagnostic})
    return Response(status=HTTPStatus.NO_CONTENT)


def _authenticated_owner() -> str:
    """Get the user id from the bearer token on the request."""
    auth_header = request.headers.get('Authorization')
    if not auth_header:
        raise Unauthorized('Auth token not found')
    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        logger.error('Auth header malformed')
        raise Unauthorized('Auth header is malformed')
    try:
        secret = _jwt_secret()
    except ConfigurationError as e:
        logger.error('Cannot verify auth tokens: %s', e)
        raise InternalServerError('Service misconfigured') from e
    try:
        claims = jwt.decode(parts[1], secret, algorithms=['HS256'])
    except jwt.exceptions.InvalidTokenError as e:
        logger.error('Invalid auth token: %s: %s', type(e), e)
        raise Unauthorized('Not a valid auth token') from e
    user_id = claims.get('user_id')
    if user_id is None or str(user_id) == '':
        raise Unauthorized('Token payload malformed')
    return str(user_id)


def _jwt_secret() -> str:
    secret: str = current_app.config.get('JWT_SECRET') or ''
    if not secret:
        raise ConfigurationError('JWT_SECRET is not set')
    return secret
