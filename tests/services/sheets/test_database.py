import unittest
from unittest.mock import patch

from sheetsdb.services.sheets import SheetsDatabase, Verified, Pending, NotInitialized

from tests.fakes import FakeRemoteStoreClient, make_config, make_database

COACH = Verified(id='204417389212345678901', email='coach@example.com')
STUDENT_EMAIL = 'student@example.com'


class TestSheetsDatabase(unittest.IsolatedAsyncioTestCase):

    async def test_coach_and_student_share_a_document(self):
        """A coach registers a student, shares the store, and the student writes into it."""
        client = FakeRemoteStoreClient(user=COACH)
        coach_db = make_database(client)

        self.assertEqual(await coach_db.whoami(), COACH)
        coach_doc = await coach_db.open(COACH)
        await coach_db.identity.register_pending(STUDENT_EMAIL, first_name='Ana', role='student')
        await coach_db.insert('profiles', {'id': COACH.id, 'first_name': 'Maria', 'last_name': 'Silva', 'email': COACH.email, 'role': 'coach'})
        await coach_db.grant(STUDENT_EMAIL)

        # The student signs in on the same backend
        student = Verified(id='304417389212345678901', email=STUDENT_EMAIL)
        client.user = student
        student_db = make_database(client)
        own_doc = await student_db.open(student)
        self.assertNotEqual(own_doc, coach_doc)

        shared = await student_db.list_shared_stores(student)
        self.assertEqual([(s.id, s.owner_name) for s in shared], [(coach_doc, 'Maria Silva')])

        await student_db.switch_to(shared[0].id)
        linked = await student_db.identity.link(Pending(STUDENT_EMAIL), student)
        self.assertEqual(linked['id'], student.id)
        await student_db.insert('weight_history', {'user_id': student.id, 'weight_kg': 61.2})

        history = await student_db.select('weight_history', eq=('user_id', student.id))
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0]['user_id'], student.id)

        await student_db.switch_to(None)
        self.assertEqual(student_db.current(), own_doc)
        self.assertEqual(await student_db.select('weight_history'), [])

        # Coach revokes; the student keeps the own document
        client.user = COACH
        grants = await coach_db.list_grants()
        self.assertEqual([g.email for g in grants], [STUDENT_EMAIL])
        await coach_db.revoke(grants[0].id)
        self.assertEqual(await coach_db.list_grants(), [])

    async def test_fresh_principal_can_write_and_read_a_workout(self):
        client = FakeRemoteStoreClient(user=COACH, coerce_numbers=True)
        db = make_database(client)

        await db.open(COACH)
        inserted = await db.insert('workouts', {'user_id': COACH.id, 'name': 'A'})
        rows = await db.select('workouts', eq=('user_id', COACH.id))

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['name'], 'A')
        self.assertEqual(rows[0]['id'], inserted[0]['id'])
        self.assertEqual(rows[0]['user_id'], COACH.id)
        by_id = await db.select('workouts', eq=('id', inserted[0]['id']))
        self.assertEqual(by_id, [{**inserted[0], 'muscle_group': None, 'exercises': None, 'created_at': None}])

    async def test_open_twice_keeps_original(self):
        db = make_database(FakeRemoteStoreClient(user=COACH))
        first = await db.open(COACH)
        second = await db.open(COACH)
        self.assertEqual(first, second)
        self.assertEqual(db.original(), first)

    async def test_reset_forgets_documents(self):
        client = FakeRemoteStoreClient(user=COACH)
        db = make_database(client)
        await db.open(COACH)

        db.reset()

        self.assertIsNone(db.current())
        self.assertIsNone(db.resolver.cached_document_id)
        with self.assertRaises(NotInitialized):
            await db.select('workouts')
        await db.open(COACH)
        self.assertEqual(client.calls['find_documents'], 2)

    def test_from_config_builds_remote_client(self):
        config = make_config()
        with patch('sheetsdb.services.sheets.database.RemoteStoreClient.from_config') as mock_from_config:
            db = SheetsDatabase.from_config(config)

        mock_from_config.assert_called_once_with(config)
        self.assertIs(db.client, mock_from_config.return_value)
        self.assertEqual(db.retry.max_attempts, 3)
        self.assertEqual(db.schemas.names()[0], 'profiles')


if __name__ == '__main__':
    unittest.main()
