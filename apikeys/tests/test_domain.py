"""Tests for :mod:`apikeys.domain`."""

from unittest import TestCase

from apikeys import domain


class TestClientRegistration(TestCase):
    """Registrations read their owner from the client attributes."""

    def test_without_attributes(self):
        """A registration without attributes has no owner."""
        registration = domain.ClientRegistration(client_id='U1-0',
                                                 name='east')
        self.assertIsNone(registration.attributes)
        self.assertIsNone(registration.owner_id)

    def test_owner_from_attributes(self):
        registration = domain.ClientRegistration(
            client_id='U1-0', name='east', attributes={'user_id': 'U1'}
        )
        self.assertEqual(registration.owner_id, 'U1')

    def test_attributes_not_shared(self):
        """Registrations built without attributes do not share a dict."""
        first = domain.ClientRegistration(client_id='U1-0', name='east')
        second = domain.ClientRegistration(
            client_id='U1-1', name='west', attributes={'user_id': 'U1'}
        )
        second.attributes['user_id'] = 'U2'
        self.assertIsNone(first.attributes)
        self.assertEqual(second.owner_id, 'U2')
