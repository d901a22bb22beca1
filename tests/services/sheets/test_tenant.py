import unittest

from sheetsdb.config.config import DEFAULT_TABLE_SCHEMAS
from sheetsdb.exceptions import NotInitialized, PermissionDenied
from sheetsdb.services.sheets.identity import Verified

from tests.fakes import FakeRemoteStoreClient, make_database

PRINCIPAL = Verified(id='104417389212345678901', email='student@example.com')


class TestTenantRouter(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.client = FakeRemoteStoreClient(user=PRINCIPAL)
        self.db = make_database(self.client)
        self.own_doc = await self.db.open(PRINCIPAL)
        self.coach_doc = self.client.add_document('APP_DB', 'coach@example.com', DEFAULT_TABLE_SCHEMAS)
        self.client.share(self.coach_doc, PRINCIPAL.email)

    async def test_open_sets_original_and_active(self):
        self.assertEqual(self.db.original(), self.own_doc)
        self.assertEqual(self.db.current(), self.own_doc)
        self.assertFalse(self.db.router.is_viewing_shared())

    async def test_switch_to_shared_and_back(self):
        await self.db.switch_to(self.coach_doc)

        self.assertEqual(self.db.current(), self.coach_doc)
        self.assertEqual(self.db.original(), self.own_doc)
        self.assertTrue(self.db.router.is_viewing_shared())

        await self.db.insert('workouts', {'name': 'Coach plan'})
        self.assertEqual(len(self.client.rows(self.coach_doc, 'workouts')), 2)
        self.assertEqual(len(self.client.rows(self.own_doc, 'workouts')), 1)

        await self.db.switch_to(None)
        self.assertEqual(self.db.current(), self.db.original())
        self.assertFalse(self.db.router.is_viewing_shared())

    async def test_switch_repairs_target_tables(self):
        partial = self.client.add_document('APP_DB', 'coach2@example.com', {'profiles': DEFAULT_TABLE_SCHEMAS['profiles']})
        self.client.share(partial, PRINCIPAL.email)

        await self.db.switch_to(partial)

        self.assertEqual(set(self.client.documents[partial].sheets), set(DEFAULT_TABLE_SCHEMAS))

    async def test_original_is_only_set_once(self):
        self.db.router.set_original('another-doc')
        self.assertEqual(self.db.original(), self.own_doc)

    async def test_denied_table_validation_keeps_current_document(self):
        stranger_doc = self.client.add_document('APP_DB', 'stranger@example.com', DEFAULT_TABLE_SCHEMAS)

        with self.assertRaises(PermissionDenied):
            await self.db.switch_to(stranger_doc)
        self.assertEqual(self.db.current(), self.own_doc)

    async def test_switch_itself_does_not_check_access(self):
        stranger_doc = self.client.add_document('APP_DB', 'stranger@example.com', DEFAULT_TABLE_SCHEMAS)
        # Table validation stays rate limited, so the switch succeeds without touching the document
        self.client.rate_limit('list_tables', times=3)

        await self.db.switch_to(stranger_doc)
        self.assertEqual(self.db.current(), stranger_doc)

        with self.assertRaises(PermissionDenied):
            await self.db.insert('workouts', {'name': 'Nope'})

    async def test_switch_without_original(self):
        db = make_database(self.client)
        with self.assertRaises(NotInitialized):
            await db.switch_to(None)


if __name__ == '__main__':
    unittest.main()
