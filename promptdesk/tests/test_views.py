import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from promptdesk.auth import InMemoryAuthServer, InMemoryCookieStore, InMemorySessionClient
from promptdesk.data import DataClient
from promptdesk.db import InMemoryPromptTable
from promptdesk.errors import AuthError, BackendError, PromptNotFoundError
from promptdesk.storage import InMemoryFileStorage
from promptdesk.types import AIProvider, Category, PromptFormData, PromptRecord
from promptdesk.views import DELETE_CONFIRMATION, PromptListView, filter_prompts


def make_record(prompt_id, title, content, category, minutes=0):
    created = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes)
    return PromptRecord(
        id=prompt_id,
        user_id="user-1",
        title=title,
        content=content,
        category=category,
        ai_provider=AIProvider.OPENAI,
        created_at=created,
        updated_at=created,
    )


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


class FilterPromptsTests(unittest.TestCase):
    def setUp(self):
        self.records = [
            make_record("1", "Sunset painting", "watercolor sky", Category.ART),
            make_record("2", "Weekly report", "Summarize the SALES numbers", Category.WORK),
            make_record("3", "Birthday note", "write a poem for mom", Category.PERSONAL),
            make_record("4", "Logo", "a fox in a sunset", Category.ART),
        ]

    def test_all_with_empty_query_keeps_everything(self):
        self.assertEqual(filter_prompts(self.records, "All", ""), self.records)

    def test_category_filter(self):
        visible = filter_prompts(self.records, "Art", "")
        self.assertEqual([r.id for r in visible], ["1", "4"])

    def test_query_is_case_insensitive_over_title_and_content(self):
        visible = filter_prompts(self.records, "All", "sunset")
        self.assertEqual([r.id for r in visible], ["1", "4"])
        visible = filter_prompts(self.records, "All", "sales")
        self.assertEqual([r.id for r in visible], ["2"])

    def test_category_and_query_combine(self):
        visible = filter_prompts(self.records, "Work", "poem")
        self.assertEqual(visible, [])
        visible = filter_prompts(self.records, "Personal", "POEM")
        self.assertEqual([r.id for r in visible], ["3"])

    def test_order_is_preserved(self):
        visible = filter_prompts(list(reversed(self.records)), "Art", "")
        self.assertEqual([r.id for r in visible], ["4", "1"])


class PromptListViewTests(unittest.TestCase):
    def setUp(self):
        self.server = InMemoryAuthServer()
        self.cookies = InMemoryCookieStore()
        self.session = InMemorySessionClient(self.server, self.cookies)
        self.table = InMemoryPromptTable(clock=FakeClock())
        self.data = DataClient(table=self.table, files=InMemoryFileStorage())
        self.confirmations = []

    def sign_in(self, email="ada@example.com"):
        code = self.server.authorize(email)
        return self.session.exchange_code_for_session(code)

    def make_view(self, answer=True):
        def confirm(message):
            self.confirmations.append(message)
            return answer

        view = PromptListView(self.session, self.data, confirm=confirm)
        return view

    def test_load_without_session_returns_false(self):
        view = self.make_view()
        self.assertFalse(view.load())
        self.assertEqual(view.prompts, [])
        with self.assertRaises(AuthError):
            view.create(PromptFormData(title="t", content="c"))

    def test_create_adds_record_once(self):
        user = self.sign_in()
        view = self.make_view()
        self.assertTrue(view.load())

        record = view.create(
            PromptFormData(title="Email", content="Draft a reply", ai_provider=None)
        )
        self.assertEqual(record.user_id, user.id)
        self.assertEqual(record.ai_provider, AIProvider.OPENAI)
        self.assertEqual([r.id for r in view.prompts], [record.id])

    def test_list_is_newest_first(self):
        self.sign_in()
        view = self.make_view()
        view.load()
        first = view.create(PromptFormData(title="first", content="a"))
        second = view.create(PromptFormData(title="second", content="b"))
        self.assertEqual([r.id for r in view.prompts], [second.id, first.id])

    def test_update_keeps_identity_and_created_at(self):
        self.sign_in()
        view = self.make_view()
        view.load()
        created = view.create(PromptFormData(title="Old", content="body"))

        updated = view.update(
            created.id,
            PromptFormData(title="New", content="body", category=Category.PERSONAL),
        )
        self.assertEqual(updated.id, created.id)
        self.assertEqual(updated.user_id, created.user_id)
        self.assertEqual(updated.created_at, created.created_at)
        self.assertGreater(updated.updated_at, created.updated_at)
        self.assertEqual(updated.title, "New")
        self.assertEqual(view.get(created.id).category, Category.PERSONAL)

    def test_update_defaults_missing_provider(self):
        self.sign_in()
        view = self.make_view()
        view.load()
        created = view.create(
            PromptFormData(title="t", content="c", ai_provider=AIProvider.GEMINI)
        )
        updated = view.update(
            created.id, PromptFormData(title="t", content="c", ai_provider=None)
        )
        self.assertEqual(updated.ai_provider, AIProvider.OPENAI)

    def test_declined_delete_makes_no_backend_call(self):
        self.sign_in()
        view = self.make_view(answer=False)
        view.load()
        created = view.create(PromptFormData(title="t", content="c"))
        view.data = MagicMock(wraps=self.data)

        self.assertFalse(view.delete(created.id))
        self.assertEqual(self.confirmations, [DELETE_CONFIRMATION])
        view.data.delete_prompt.assert_not_called()
        self.assertEqual(len(self.table.rows), 1)

    def test_confirmed_delete_removes_record(self):
        self.sign_in()
        view = self.make_view()
        view.load()
        created = view.create(PromptFormData(title="t", content="c"))

        self.assertTrue(view.delete(created.id))
        self.assertEqual(view.prompts, [])
        with self.assertRaises(PromptNotFoundError):
            view.get(created.id)

    def test_cannot_touch_another_users_prompt(self):
        self.sign_in("ada@example.com")
        view = self.make_view()
        view.load()
        created = view.create(PromptFormData(title="t", content="c"))

        self.session.sign_out()
        self.sign_in("grace@example.com")
        other = self.make_view()
        other.load()
        self.assertEqual(other.prompts, [])
        with self.assertRaises(PromptNotFoundError):
            other.update(created.id, PromptFormData(title="x", content="y"))
        with self.assertRaises(PromptNotFoundError):
            other.delete(created.id)
        self.assertIn(created.id, self.table.rows)

    def test_backend_errors_are_prefixed(self):
        self.sign_in()
        view = self.make_view()
        view.load()
        view.data = MagicMock()
        view.data.create_prompt.side_effect = BackendError("permission denied")
        view.data.update_prompt.side_effect = BackendError("timeout")
        view.data.delete_prompt.side_effect = BackendError("offline")

        with self.assertRaises(BackendError) as ctx:
            view.create(PromptFormData(title="t", content="c"))
        self.assertEqual(ctx.exception.message, "Error creating prompt: permission denied")
        with self.assertRaises(BackendError) as ctx:
            view.update("p1", PromptFormData(title="t", content="c"))
        self.assertEqual(ctx.exception.message, "Error updating prompt: timeout")
        with self.assertRaises(BackendError) as ctx:
            view.delete("p1")
        self.assertEqual(ctx.exception.message, "Error deleting prompt: offline")

    def test_refresh_failure_leaves_empty_list(self):
        self.sign_in()
        view = self.make_view()
        view.data = MagicMock()
        view.data.list_prompts.side_effect = BackendError("offline")
        with self.assertLogs("promptdesk.views", level="WARNING"):
            self.assertTrue(view.load())
        self.assertEqual(view.prompts, [])
        self.assertEqual(view.visible, [])

    def test_strict_load_raises_fetch_failure(self):
        self.sign_in()
        view = self.make_view()
        view.data = MagicMock()
        view.data.list_prompts.side_effect = BackendError("offline")
        with self.assertRaises(BackendError) as ctx:
            view.load(strict=True)
        self.assertEqual(ctx.exception.message, "Error fetching prompts: offline")

    def test_filters_recompute_visible(self):
        self.sign_in()
        view = self.make_view()
        view.load()
        view.create(PromptFormData(title="Sunset", content="sky", category=Category.ART))
        view.create(PromptFormData(title="Report", content="numbers"))

        view.category = "Art"
        self.assertEqual([r.title for r in view.visible], ["Sunset"])
        view.query = "report"
        self.assertEqual(view.visible, [])
        view.category = "All"
        self.assertEqual([r.title for r in view.visible], ["Report"])
        with self.assertRaises(ValueError):
            view.category = "Music"


if __name__ == "__main__":
    unittest.main()
