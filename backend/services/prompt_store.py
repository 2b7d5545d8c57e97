"""
Prompt Store - File-based persistence for prompts, history and the recycle bin

Each prompt is one JSON file named after its id. Deleting a prompt or a
history version moves it into the recycle bin directory instead of removing it.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from services.config_manager import ConfigManager
from services.diff_engine import diff, get_summary, line_count

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Untitled Prompt"
INITIAL_CHANGES = "Initial version"
UNSUMMARIZED_CHANGES = "Content updated"
DEFAULT_MAX_DIFF_LINES = 1000

_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_VERSION_PREFIX = "version_"


class PromptNotFoundError(LookupError):
    """No prompt (or recycle bin entry) with the given id"""


class VersionNotFoundError(LookupError):
    """History index out of range"""


def now_iso() -> str:
    """Current UTC time in the same form as JavaScript's toISOString()"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _sort_key(value: str | None) -> datetime:
    if not value:
        return datetime.min.replace(tzinfo=timezone.utc)
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _check_id(record_id: str) -> str:
    if not _ID_RE.match(record_id or ""):
        raise ValueError(f"Invalid id: {record_id!r}")
    return record_id


class PromptStore:
    """Read and write prompt records under two directories"""

    def __init__(
        self,
        prompts_dir: str | Path,
        recycle_dir: str | Path,
        max_diff_lines: int = DEFAULT_MAX_DIFF_LINES,
    ):
        self.prompts_dir = Path(prompts_dir)
        self.recycle_dir = Path(recycle_dir)
        self.max_diff_lines = max_diff_lines

    def ensure_dirs(self) -> None:
        self.prompts_dir.mkdir(parents=True, exist_ok=True)
        self.recycle_dir.mkdir(parents=True, exist_ok=True)

    # ========== File Helpers ==========

    def _prompt_path(self, prompt_id: str) -> Path:
        return self.prompts_dir / f"{_check_id(prompt_id)}.json"

    def _read(self, path: Path) -> dict[str, Any]:
        return json.loads(path.read_text(encoding="utf-8"))

    def _write(self, path: Path, record: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(record, ensure_ascii=False, indent=2), encoding="utf-8")

    def _read_all(self, directory: Path) -> list[dict[str, Any]]:
        if not directory.exists():
            return []
        records = []
        for path in directory.glob("*.json"):
            try:
                records.append(self._read(path))
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("[PromptStore] Skipping unreadable file %s: %s", path.name, e)
        return records

    # ========== Prompts ==========

    def list_prompts(self) -> list[dict[str, Any]]:
        """All prompts, most recently updated first"""
        prompts = self._read_all(self.prompts_dir)
        prompts.sort(key=lambda p: _sort_key(p.get("updatedAt")), reverse=True)
        return prompts

    def get_prompt(self, prompt_id: str) -> dict[str, Any]:
        path = self._prompt_path(prompt_id)
        if not path.exists():
            raise PromptNotFoundError(prompt_id)
        return self._read(path)

    def unique_title(self, base_title: str | None) -> str:
        """Return base_title, or base_title with the first free numeric suffix"""
        base = base_title or DEFAULT_TITLE
        existing = {p.get("title") for p in self._read_all(self.prompts_dir)}
        if base not in existing:
            return base

        counter = 2
        while f"{base} {counter}" in existing:
            counter += 1
        return f"{base} {counter}"

    def create_prompt(
        self,
        title: str | None = None,
        content: str = "",
        tags: list[str] | None = None,
    ) -> dict[str, Any]:
        now = now_iso()
        prompt = {
            "id": str(uuid.uuid4()),
            "title": self.unique_title(title),
            "content": content or "",
            "tags": list(tags or []),
            "createdAt": now,
            "updatedAt": now,
            "history": [],
        }
        self._write(self._prompt_path(prompt["id"]), prompt)
        logger.info("[PromptStore] Created prompt %s (%s)", prompt["id"], prompt["title"])
        return prompt

    def update_prompt(
        self,
        prompt_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        tags: list[str] | None = None,
        history: list[dict[str, Any]] | None = None,
        changes: str | None = None,
    ) -> dict[str, Any]:
        """
        Apply a partial update. A content change first pushes the previous
        content onto the history, labelled with its change summary.
        """
        prompt = self.get_prompt(prompt_id)
        prompt.setdefault("history", [])

        old_content = prompt.get("content", "")
        if content is not None and content != old_content:
            if not changes:
                changes = self._summarize_change(old_content, content)
            prompt["history"].append({
                "version": len(prompt["history"]),
                "content": old_content,
                "timestamp": prompt.get("updatedAt") or now_iso(),
                "changes": changes,
            })

        if title is not None:
            prompt["title"] = title
        if content is not None:
            prompt["content"] = content
        if tags is not None:
            prompt["tags"] = tags
        if history is not None:
            prompt["history"] = history
        prompt["updatedAt"] = now_iso()

        self._write(self._prompt_path(prompt_id), prompt)
        return prompt

    def _summarize_change(self, old_content: str, new_content: str) -> str:
        if not old_content:
            return INITIAL_CHANGES
        if max(line_count(old_content), line_count(new_content)) > self.max_diff_lines:
            return UNSUMMARIZED_CHANGES
        return get_summary(diff(old_content, new_content))

    def save_prompt(self, prompt_id: str, record: dict[str, Any]) -> dict[str, Any]:
        """Overwrite a whole record (autosave)"""
        record = dict(record)
        record["id"] = prompt_id
        record["updatedAt"] = now_iso()
        self._write(self._prompt_path(prompt_id), record)
        logger.info("[PromptStore] Autosaved %s", record.get("title") or DEFAULT_TITLE)
        return record

    def import_prompts(self, records: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Write imported records as-is, assigning ids to records without a usable one"""
        imported = []
        for record in records:
            record = dict(record)
            if not _ID_RE.match(str(record.get("id") or "")):
                record["id"] = str(uuid.uuid4())
            record.setdefault("history", [])
            record.setdefault("updatedAt", now_iso())
            record.setdefault("createdAt", record["updatedAt"])
            self._write(self._prompt_path(record["id"]), record)
            imported.append(record)
        logger.info("[PromptStore] Imported %d prompts", len(imported))
        return imported

    def delete_prompt(self, prompt_id: str) -> None:
        """Move a prompt into the recycle bin"""
        prompt = self.get_prompt(prompt_id)
        prompt["deletedAt"] = now_iso()
        self._write(self.recycle_dir / f"{prompt_id}.json", prompt)
        self._prompt_path(prompt_id).unlink()
        logger.info("[PromptStore] Moved prompt %s to recycle bin", prompt_id)

    # ========== History ==========

    def get_version_content(self, prompt: dict[str, Any], version: str | int) -> str:
        """Content of "current" or of a 0-based history index"""
        if version == "current":
            return prompt.get("content", "")
        history = prompt.get("history", [])
        try:
            index = int(version)
        except (TypeError, ValueError):
            raise VersionNotFoundError(version)
        if not 0 <= index < len(history):
            raise VersionNotFoundError(version)
        return history[index].get("content", "")

    def delete_version(self, prompt_id: str, index: int) -> dict[str, Any]:
        """Move one history entry into the recycle bin and renumber the rest"""
        prompt = self.get_prompt(prompt_id)
        history = prompt.get("history", [])
        logger.info(
            "[PromptStore] Deleting version %s of %s (history length %d)", index, prompt_id, len(history)
        )
        if not 0 <= index < len(history):
            raise VersionNotFoundError(index)

        deleted = history.pop(index)
        recycle_item = {
            "id": str(uuid.uuid4()),
            "type": "version",
            "promptId": prompt["id"],
            "promptTitle": prompt.get("title"),
            "version": deleted.get("version"),
            "content": deleted.get("content", ""),
            "timestamp": deleted.get("timestamp"),
            "deletedAt": now_iso(),
        }
        self._write(self.recycle_dir / f"{_VERSION_PREFIX}{recycle_item['id']}.json", recycle_item)

        for i, entry in enumerate(history):
            entry["version"] = i
        prompt["history"] = history

        self._write(self._prompt_path(prompt_id), prompt)
        return prompt

    # ========== Recycle Bin ==========

    def _recycle_path(self, item_id: str) -> Path:
        _check_id(item_id)
        for name in (f"{item_id}.json", f"{_VERSION_PREFIX}{item_id}.json"):
            path = self.recycle_dir / name
            if path.exists():
                return path
        raise PromptNotFoundError(item_id)

    def list_recycle_bin(self) -> list[dict[str, Any]]:
        items = self._read_all(self.recycle_dir)
        items.sort(key=lambda p: _sort_key(p.get("deletedAt")), reverse=True)
        return items

    def get_recycle_item(self, item_id: str) -> dict[str, Any]:
        return self._read(self._recycle_path(item_id))

    def restore(self, item_id: str) -> dict[str, Any]:
        """
        Restore a recycle bin entry. A deleted prompt moves back to the
        library; a deleted version is appended to its prompt's history.
        Returns the restored prompt.
        """
        path = self._recycle_path(item_id)
        item = self._read(path)

        if item.get("type") == "version":
            prompt = self.get_prompt(item["promptId"])
            prompt.setdefault("history", []).append({
                "version": len(prompt["history"]),
                "content": item.get("content", ""),
                "timestamp": item.get("timestamp") or now_iso(),
                "changes": "Restored",
            })
        else:
            prompt = item
            prompt.pop("deletedAt", None)

        prompt["updatedAt"] = now_iso()
        self._write(self._prompt_path(prompt["id"]), prompt)
        path.unlink()
        logger.info("[PromptStore] Restored %s", item_id)
        return prompt

    def purge(self, item_id: str) -> None:
        """Permanently delete one recycle bin entry"""
        self._recycle_path(item_id).unlink()

    def empty_recycle_bin(self) -> int:
        if not self.recycle_dir.exists():
            return 0
        count = 0
        for path in self.recycle_dir.glob("*.json"):
            path.unlink()
            count += 1
        logger.info("[PromptStore] Emptied recycle bin (%d items)", count)
        return count


# ═══════════════════════════════════════════════════════════════════════════
# Module-level helper functions
# ═══════════════════════════════════════════════════════════════════════════


def get_prompt_store() -> PromptStore:
    """Build a store from the current storage config (FastAPI dependency)."""
    config = ConfigManager.get_instance().get_config()
    storage = config.get("storage", {})
    max_lines = config.get("diff", {}).get("maxLines", DEFAULT_MAX_DIFF_LINES)
    return PromptStore(storage["promptsDir"], storage["recycleDir"], max_diff_lines=max_lines)
