import json

import pytest

from services.prompt_store import (
    INITIAL_CHANGES,
    UNSUMMARIZED_CHANGES,
    PromptNotFoundError,
    PromptStore,
    VersionNotFoundError,
)


def _record(prompt_id, title, updated_at):
    return {
        "id": prompt_id,
        "title": title,
        "content": title.lower(),
        "tags": [],
        "createdAt": updated_at,
        "updatedAt": updated_at,
        "history": [],
    }


class TestPrompts:
    def test_create_writes_file(self, store):
        prompt = store.create_prompt("Writer", "Write a poem", ["fun"])

        path = store.prompts_dir / f"{prompt['id']}.json"
        assert json.loads(path.read_text(encoding="utf-8")) == prompt
        assert prompt["history"] == []
        assert prompt["createdAt"] == prompt["updatedAt"]
        assert prompt["tags"] == ["fun"]

    def test_duplicate_titles_get_suffix(self, store):
        titles = [store.create_prompt()["title"] for _ in range(3)]
        assert titles == ["Untitled Prompt", "Untitled Prompt 2", "Untitled Prompt 3"]

    def test_list_sorted_by_updated_at(self, store):
        store.import_prompts([
            _record("old", "Old", "2024-01-01T00:00:00.000Z"),
            _record("new", "New", "2024-06-01T00:00:00.000Z"),
            _record("mid", "Mid", "2024-03-01T00:00:00.000Z"),
        ])
        assert [p["id"] for p in store.list_prompts()] == ["new", "mid", "old"]

    def test_get_missing(self, store):
        with pytest.raises(PromptNotFoundError):
            store.get_prompt("missing")

    def test_rejects_path_like_ids(self, store):
        with pytest.raises(ValueError):
            store.get_prompt("../secrets")

    def test_unreadable_files_are_skipped(self, store):
        store.create_prompt("Good")
        (store.prompts_dir / "broken.json").write_text("{not json", encoding="utf-8")
        assert [p["title"] for p in store.list_prompts()] == ["Good"]


class TestHistory:
    def test_content_change_records_summary(self, store):
        prompt = store.create_prompt("P", "a\nb\nc")
        created_at = prompt["updatedAt"]

        updated = store.update_prompt(prompt["id"], content="a\nx\nc")

        assert updated["content"] == "a\nx\nc"
        assert updated["history"] == [{
            "version": 0,
            "content": "a\nb\nc",
            "timestamp": created_at,
            "changes": "+1 lines, -1 lines",
        }]

    def test_first_content_is_initial_version(self, store):
        prompt = store.create_prompt("P")
        updated = store.update_prompt(prompt["id"], content="hello")
        assert updated["history"][0]["changes"] == INITIAL_CHANGES

    def test_explicit_changes_label(self, store):
        prompt = store.create_prompt("P", "a")
        updated = store.update_prompt(prompt["id"], content="b", changes="AI optimized")
        assert updated["history"][0]["changes"] == "AI optimized"

    def test_oversize_content_is_not_diffed(self, tmp_path):
        store = PromptStore(tmp_path / "prompts", tmp_path / "recycle_bin", max_diff_lines=2)
        prompt = store.create_prompt("P", "a")

        updated = store.update_prompt(prompt["id"], content="a\nb\nc")

        assert updated["history"][0]["changes"] == UNSUMMARIZED_CHANGES

    def test_title_only_update_keeps_history(self, store):
        prompt = store.create_prompt("P", "a")
        updated = store.update_prompt(prompt["id"], title="Renamed", tags=["x"])
        assert updated["title"] == "Renamed"
        assert updated["tags"] == ["x"]
        assert updated["history"] == []

    def test_version_content(self, store):
        prompt = store.create_prompt("P", "v0")
        store.update_prompt(prompt["id"], content="v1")
        prompt = store.update_prompt(prompt["id"], content="v2")

        assert store.get_version_content(prompt, "current") == "v2"
        assert store.get_version_content(prompt, "0") == "v0"
        assert store.get_version_content(prompt, 1) == "v1"
        with pytest.raises(VersionNotFoundError):
            store.get_version_content(prompt, "2")
        with pytest.raises(VersionNotFoundError):
            store.get_version_content(prompt, "latest")

    def test_delete_version_renumbers(self, store):
        prompt = store.create_prompt("P", "v0")
        for content in ("v1", "v2", "v3"):
            store.update_prompt(prompt["id"], content=content)

        updated = store.delete_version(prompt["id"], 1)

        assert [(h["version"], h["content"]) for h in updated["history"]] == [(0, "v0"), (1, "v2")]
        recycled = store.list_recycle_bin()
        assert len(recycled) == 1
        assert recycled[0]["type"] == "version"
        assert recycled[0]["promptId"] == prompt["id"]
        assert recycled[0]["content"] == "v1"
        assert recycled[0]["version"] == 1

    def test_delete_version_out_of_range(self, store):
        prompt = store.create_prompt("P", "a")
        with pytest.raises(VersionNotFoundError):
            store.delete_version(prompt["id"], 0)


class TestRecycleBin:
    def test_delete_and_restore_prompt(self, store):
        prompt = store.create_prompt("P", "a")

        store.delete_prompt(prompt["id"])

        with pytest.raises(PromptNotFoundError):
            store.get_prompt(prompt["id"])
        recycled = store.list_recycle_bin()
        assert [item["id"] for item in recycled] == [prompt["id"]]
        assert "deletedAt" in recycled[0]

        restored = store.restore(prompt["id"])
        assert "deletedAt" not in restored
        assert store.get_prompt(prompt["id"])["content"] == "a"
        assert store.list_recycle_bin() == []

    def test_restore_version_appends_to_history(self, store):
        prompt = store.create_prompt("P", "v0")
        store.update_prompt(prompt["id"], content="v1")
        store.update_prompt(prompt["id"], content="v2")
        store.delete_version(prompt["id"], 0)
        version_item = store.list_recycle_bin()[0]

        restored = store.restore(version_item["id"])

        assert [(h["version"], h["content"]) for h in restored["history"]] == [(0, "v1"), (1, "v0")]
        assert store.list_recycle_bin() == []

    def test_purge(self, store):
        prompt = store.create_prompt("P")
        store.delete_prompt(prompt["id"])
        store.purge(prompt["id"])
        assert store.list_recycle_bin() == []
        with pytest.raises(PromptNotFoundError):
            store.purge(prompt["id"])

    def test_empty(self, store):
        for title in ("A", "B"):
            store.delete_prompt(store.create_prompt(title)["id"])
        assert store.empty_recycle_bin() == 2
        assert store.list_recycle_bin() == []
