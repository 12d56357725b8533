"""
Provision the Keycloak realm in which API key clients are registered.

Run once per deployment. With ``--reset`` (or ``KEYCLOAK_RESET_REALM=1``)
the realm is deleted first.

.. warning: Resetting the realm deletes every API key issued so far.

"""

import logging

import click

from .factory import create_web_app
from .services import keycloak

logger = logging.getLogger(__name__)


@click.command()
@click.option('--reset', is_flag=True,
              help='Delete and recreate the realm.')
def setup_realm(reset: bool) -> None:
    """Create the API key client realm if it does not exist."""
    app = create_web_app()
    reset = reset or bool(app.config.get('KEYCLOAK_RESET_REALM'))

    registry = keycloak.get_registry(app)
    try:
        status = registry.check_server()
        logger.info('Keycloak server response: %s', status)
        logger.info('Starting admin Keycloak client with url: %s',
                    app.config['KEYCLOAK_SERVER_URL'])

        if reset:
            registry.delete_realm()
            registry.create_realm()
        elif registry.realm_exists():
            logger.info('Realm %s already exists', registry.realm)
        else:
            registry.create_realm()
    finally:
        registry.close()
    click.echo(f'Realm {registry.realm} is ready')


if __name__ == '__main__':
    setup_realm()
