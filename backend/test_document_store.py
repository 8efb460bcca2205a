"""sqlite document store tests."""

import os
import sqlite3
import tempfile
import unittest

from document_store import DocumentStore, new_id


class DocumentStoreTest(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.store = DocumentStore(os.path.join(self.temp_dir.name, 'store.db'))
        self.store.init_db()

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_new_id_shape(self) -> None:
        value = new_id()
        self.assertEqual(len(value), 24)
        int(value, 16)

    def test_insert_and_find_by_id(self) -> None:
        doc = self.store.insert('questions', {'user_id': 'u1', 'title': 'Hello', 'tags': ['a']})
        found = self.store.find_by_id('questions', doc['id'])
        self.assertEqual(found['title'], 'Hello')
        self.assertEqual(found['tags'], ['a'])
        self.assertEqual(found['user_id'], 'u1')
        self.assertIsNone(found['deleted_at'])
        self.assertIsNone(self.store.find_by_id('questions', new_id()))

    def test_unknown_collection(self) -> None:
        with self.assertRaises(ValueError):
            self.store.find_by_id('notes', new_id())

    def test_find_is_owner_scoped_and_newest_first(self) -> None:
        first = self.store.insert('questions', {'user_id': 'u1', 'title': 'first'})
        second = self.store.insert('questions', {'user_id': 'u1', 'title': 'second'})
        self.store.insert('questions', {'user_id': 'u2', 'title': 'other'})

        found = self.store.find('questions', user_id='u1')

        self.assertEqual([d['id'] for d in found], [second['id'], first['id']])
        self.assertEqual(len(self.store.find('questions')), 3)
        self.assertEqual(len(self.store.find('questions', user_id='u1', limit=1)), 1)

    def test_deleted_documents_are_hidden_by_default(self) -> None:
        doc = self.store.insert('questions', {'user_id': 'u1'})
        self.store.update('questions', doc['id'], {'deleted_at': '2024-01-01T00:00:00+00:00'})

        self.assertEqual(self.store.find('questions', user_id='u1'), [])
        self.assertEqual(len(self.store.find('questions', user_id='u1', include_deleted=True)), 1)
        self.assertIsNotNone(self.store.find_by_id('questions', doc['id'])['deleted_at'])

    def test_find_one_by_field(self) -> None:
        self.store.insert('users', {'email': 'ada@example.com'})
        self.assertIsNotNone(self.store.find_one('users', 'email', 'ada@example.com'))
        self.assertIsNone(self.store.find_one('users', 'email', 'bob@example.com'))

    def test_user_email_is_unique(self) -> None:
        self.store.insert('users', {'email': 'ada@example.com'})
        with self.assertRaises(sqlite3.IntegrityError):
            self.store.insert('users', {'email': 'ada@example.com'})
        self.store.insert('users', {'email': 'bob@example.com'})
        self.assertEqual(len(self.store.find('users')), 2)

    def test_init_db_is_repeatable(self) -> None:
        self.store.insert('users', {'email': 'ada@example.com'})
        self.store.init_db()
        self.assertIsNotNone(self.store.find_one('users', 'email', 'ada@example.com'))

    def test_find_many(self) -> None:
        a = self.store.insert('questions', {'user_id': 'u1'})
        b = self.store.insert('questions', {'user_id': 'u1'})
        found = self.store.find_many('questions', [a['id'], b['id'], a['id'], new_id()])
        self.assertEqual({d['id'] for d in found}, {a['id'], b['id']})
        self.assertEqual(self.store.find_many('questions', []), [])

    def test_update_merges_fields(self) -> None:
        doc = self.store.insert('collections', {'user_id': 'u1', 'name': 'Old', 'color': '#000000'})
        updated = self.store.update('collections', doc['id'], {'name': 'New'})
        self.assertEqual(updated['name'], 'New')
        self.assertEqual(self.store.find_by_id('collections', doc['id'])['color'], '#000000')
        self.assertIsNone(self.store.update('collections', new_id(), {'name': 'x'}))

    def test_add_to_set_and_pull(self) -> None:
        doc = self.store.insert('collections', {'user_id': 'u1', 'question_ids': []})

        self.assertTrue(self.store.add_to_set('collections', doc['id'], 'question_ids', 'q1'))
        self.assertTrue(self.store.add_to_set('collections', doc['id'], 'question_ids', 'q2'))
        self.assertFalse(self.store.add_to_set('collections', doc['id'], 'question_ids', 'q1'))
        self.assertEqual(self.store.find_by_id('collections', doc['id'])['question_ids'], ['q1', 'q2'])

        self.assertTrue(self.store.pull('collections', doc['id'], 'question_ids', 'q1'))
        self.assertFalse(self.store.pull('collections', doc['id'], 'question_ids', 'q1'))
        self.assertEqual(self.store.find_by_id('collections', doc['id'])['question_ids'], ['q2'])

    def test_list_operations_on_missing_document(self) -> None:
        self.assertFalse(self.store.add_to_set('collections', new_id(), 'question_ids', 'q1'))
        self.assertFalse(self.store.pull('collections', new_id(), 'question_ids', 'q1'))


if __name__ == '__main__':
    unittest.main()
