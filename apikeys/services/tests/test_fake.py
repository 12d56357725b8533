"""Tests for :mod:`apikeys.services.fake`."""

from unittest import TestCase

from apikeys import domain
from apikeys.services.fake import FakeRegistry
from apikeys.services.exceptions import ConcurrentModification


class TestFakeRegistry(TestCase):
    """The in-memory registry behaves like Keycloak where it matters."""

    def setUp(self):
        self.registry = FakeRegistry()

    def test_create_generates_secret(self):
        created = self.registry.create_client('U1-0', 'east',
                                              {'user_id': 'U1'})
        self.assertTrue(created.secret)
        self.assertTrue(created.internal_id)
        self.assertEqual(self.registry.get_client('U1-0'), created)

    def test_duplicate_id_refused(self):
        self.registry.create_client('U1-0', 'east', {})
        with self.assertRaises(ConcurrentModification):
            self.registry.create_client('U1-0', 'west', {})

    def test_find_by_prefix(self):
        self.registry.create_client('U1-0', 'east', {})
        self.registry.create_client('U1-1-0', 'other', {})
        self.registry.create_client('U10-0', 'other', {})
        found = {c.client_id for c in self.registry.find_by_owner('U1')}
        self.assertEqual(found, {'U1-0', 'U1-1-0'})

    def test_delete(self):
        created = self.registry.create_client('U1-0', 'east', {})
        outcome = self.registry.delete_client(created.internal_id)
        self.assertEqual(outcome.status, domain.DeleteOutcome.DELETED)
        self.assertIsNone(self.registry.get_client('U1-0'))
        outcome = self.registry.delete_client(created.internal_id)
        self.assertEqual(outcome.status, domain.DeleteOutcome.NOT_FOUND)

    def test_user_records_are_copies(self):
        record = self.registry.get_user_record('U1')
        record['attributes']['applications'] = ['U1-0']
        self.assertEqual(self.registry.get_user_record('U1')['attributes'],
                         {})
        self.registry.update_user_record('U1', record)
        self.assertEqual(
            self.registry.get_user_record('U1')['attributes'],
            {'applications': ['U1-0']}
        )
