import unittest
from datetime import datetime, timedelta, timezone

from promptdesk.db import InMemoryPromptTable, SqlPromptTable
from promptdesk.errors import PromptNotFoundError
from promptdesk.types import AIProvider, Category


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


def row(title, **extra):
    values = {
        "title": title,
        "content": f"{title} content",
        "category": "Work",
        "ai_provider": "OpenAI",
    }
    values.update(extra)
    return values


class PromptTableContract:
    """Behaviour every table backend shares; mixed into the concrete cases."""

    table = None

    def test_insert_assigns_identity(self):
        record = self.table.insert("user-1", row("Email", category="Art", image_url="https://x/y.png"))
        self.assertTrue(record.id)
        self.assertEqual(record.user_id, "user-1")
        self.assertEqual(record.category, Category.ART)
        self.assertEqual(record.ai_provider, AIProvider.OPENAI)
        self.assertEqual(record.image_url, "https://x/y.png")
        self.assertEqual(record.created_at, record.updated_at)
        self.assertIsNotNone(record.created_at.tzinfo)

    def test_insert_ignores_owner_and_identity_fields(self):
        record = self.table.insert(
            "user-1", dict(row("Sneaky"), id="forced", user_id="user-2")
        )
        self.assertNotEqual(record.id, "forced")
        self.assertEqual(record.user_id, "user-1")

    def test_select_scopes_to_user_newest_first(self):
        first = self.table.insert("user-1", row("first"))
        self.table.insert("user-2", row("other"))
        second = self.table.insert("user-1", row("second"))
        records = self.table.select_for_user("user-1")
        self.assertEqual([r.id for r in records], [second.id, first.id])

    def test_update_changes_fields_and_timestamp(self):
        created = self.table.insert("user-1", row("Old"))
        updated = self.table.update(
            created.id, "user-1", {"title": "New", "category": "Personal"}
        )
        self.assertEqual(updated.id, created.id)
        self.assertEqual(updated.title, "New")
        self.assertEqual(updated.category, Category.PERSONAL)
        self.assertEqual(updated.created_at, created.created_at)
        self.assertGreater(updated.updated_at, created.updated_at)

    def test_update_other_users_row_is_not_found(self):
        created = self.table.insert("user-1", row("Mine"))
        with self.assertRaises(PromptNotFoundError):
            self.table.update(created.id, "user-2", {"title": "Theirs"})
        self.assertEqual(self.table.select_for_user("user-1")[0].title, "Mine")

    def test_delete(self):
        created = self.table.insert("user-1", row("Gone"))
        with self.assertRaises(PromptNotFoundError):
            self.table.delete(created.id, "user-2")
        self.table.delete(created.id, "user-1")
        self.assertEqual(self.table.select_for_user("user-1"), [])
        with self.assertRaises(PromptNotFoundError):
            self.table.delete(created.id, "user-1")


class SqlPromptTableTests(PromptTableContract, unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL table.
    """

    def setUp(self):
        self.table = SqlPromptTable("sqlite+pysqlite:///:memory:", clock=FakeClock())

    def tearDown(self):
        self.table.engine.dispose()

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            SqlPromptTable("")


class InMemoryPromptTableTests(PromptTableContract, unittest.TestCase):
    def setUp(self):
        self.table = InMemoryPromptTable(clock=FakeClock())

    def test_returns_copies(self):
        created = self.table.insert("user-1", row("Original"))
        fetched = self.table.select_for_user("user-1")[0]
        fetched.title = "mutated"
        self.assertEqual(self.table.rows[created.id].title, "Original")

    def test_same_timestamp_keeps_insert_order(self):
        fixed = datetime(2024, 1, 1, tzinfo=timezone.utc)
        table = InMemoryPromptTable(clock=lambda: fixed)
        first = table.insert("user-1", row("first"))
        second = table.insert("user-1", row("second"))
        self.assertEqual([r.id for r in table.select_for_user("user-1")], [second.id, first.id])


if __name__ == "__main__":
    unittest.main()
