"""
Transfer Service - Import and export the prompt library

Two formats: a JSON backup of the full records, and a Python module with one
triple-quoted string variable per prompt.
"""

from __future__ import annotations

import ast
import keyword
import re
import uuid
from datetime import datetime
from typing import Any, Iterable

from services.prompt_store import DEFAULT_TITLE, now_iso

EXPORT_VERSION = "1.0"
ALL_PROMPTS_NAME = "ALL_PROMPTS"

_INVALID_VAR_CHARS_RE = re.compile(r"[^a-zA-Z0-9\u4e00-\u9fa5_]")
_TITLE_COMMENT_RE = re.compile(r"^#\s*\d+\.\s*(.+)$")
_TAGS_COMMENT_RE = re.compile(r"^#\s*Tags:\s*(.+)$")


# ========== JSON ==========


def export_json(prompts: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "version": EXPORT_VERSION,
        "exportedAt": now_iso(),
        "prompts": prompts,
    }


def import_json(data: Any, existing_ids: Iterable[str]) -> list[dict[str, Any]]:
    """Return the prompts of a JSON backup whose ids are not already present"""
    if not isinstance(data, dict) or not isinstance(data.get("prompts"), list):
        raise ValueError("Invalid backup format: missing 'prompts' list")

    existing = set(existing_ids)
    return [p for p in data["prompts"] if isinstance(p, dict) and p.get("id") not in existing]


# ========== Python ==========


def title_to_var_name(title: str | None) -> str:
    """Turn a prompt title into a valid Python identifier"""
    if not title:
        return "untitled"

    var_name = _INVALID_VAR_CHARS_RE.sub("_", title)
    var_name = re.sub(r"_+", "_", var_name).strip("_")

    if var_name[:1].isdigit():
        var_name = "prompt_" + var_name
    if keyword.iskeyword(var_name):
        var_name += "_"
    return var_name or "untitled"


def var_name_to_title(var_name: str) -> str:
    return re.sub(r"\b\w", lambda m: m.group().upper(), var_name.replace("_", " ")).strip()


def _escape_triple_quoted(content: str) -> str:
    escaped = content.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    # a quote right before the closing delimiter would end the literal early
    return re.sub(r'"+$', lambda m: '\\"' * len(m.group()), escaped)


def _format_time(value: str | None) -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M:%S")
    except ValueError:
        return value


def export_python(prompts: list[dict[str, Any]], now: datetime | None = None) -> str:
    """Render the library as an importable Python module"""
    now = now or datetime.now()
    lines = [
        "# -*- coding: utf-8 -*-",
        '"""',
        "Prompt library export",
        f"Exported at: {now.strftime('%Y-%m-%d %H:%M:%S')}",
        f"Total: {len(prompts)} prompts",
        '"""',
        "",
    ]

    used_names: list[str] = []
    for index, prompt in enumerate(prompts):
        var_name = title_to_var_name(prompt.get("title"))
        final_name = var_name
        counter = 1
        while final_name in used_names or final_name == ALL_PROMPTS_NAME:
            final_name = f"{var_name}_{counter}"
            counter += 1
        used_names.append(final_name)

        lines.append(f"# {index + 1}. {prompt.get('title') or DEFAULT_TITLE}")
        if prompt.get("tags"):
            lines.append(f"# Tags: {', '.join(prompt['tags'])}")
        lines.append(f"# Updated: {_format_time(prompt.get('updatedAt'))}")
        lines.append(f'{final_name} = """{_escape_triple_quoted(prompt.get("content") or "")}"""')
        lines.append("")

    lines.append("# All prompts by title")
    lines.append(f"{ALL_PROMPTS_NAME} = {{")
    for prompt, var_name in zip(prompts, used_names):
        lines.append(f"    {prompt.get('title') or DEFAULT_TITLE!r}: {var_name},")
    lines.append("}")
    lines.append("")

    return "\n".join(lines)


def _comment_metadata(source_lines: list[str], lineno: int) -> tuple[str, list[str]]:
    """Title and tags from the comment block directly above a line (1-based)"""
    title = ""
    tags: list[str] = []
    i = lineno - 2
    while i >= 0 and source_lines[i].strip().startswith("#"):
        comment = source_lines[i].strip()
        title_match = _TITLE_COMMENT_RE.match(comment)
        tags_match = _TAGS_COMMENT_RE.match(comment)
        if title_match and not title:
            title = title_match.group(1).strip()
        elif tags_match and not tags:
            tags = [t.strip() for t in tags_match.group(1).split(",") if t.strip()]
        i -= 1
    return title, tags


def parse_python(source: str) -> list[dict[str, Any]]:
    """Extract prompts from module-level string assignments"""
    try:
        tree = ast.parse(source)
    except SyntaxError as e:
        raise ValueError(f"Invalid Python source: {e}")

    source_lines = source.split("\n")
    prompts = []
    for node in tree.body:
        if not (isinstance(node, ast.Assign) and len(node.targets) == 1):
            continue
        target = node.targets[0]
        if not isinstance(target, ast.Name) or target.id == ALL_PROMPTS_NAME:
            continue
        if not (isinstance(node.value, ast.Constant) and isinstance(node.value.value, str)):
            continue

        title, tags = _comment_metadata(source_lines, node.lineno)
        now = now_iso()
        prompts.append({
            "id": str(uuid.uuid4()),
            "title": title or var_name_to_title(target.id),
            "content": node.value.value,
            "tags": tags,
            "createdAt": now,
            "updatedAt": now,
            "history": [],
        })
    return prompts


def import_python(source: str, existing_contents: Iterable[str]) -> list[dict[str, Any]]:
    """Prompts from a Python export whose content is not already in the library"""
    existing = set(existing_contents)
    return [p for p in parse_python(source) if p["content"] not in existing]
