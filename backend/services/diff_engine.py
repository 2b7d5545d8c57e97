"""
Diff Engine - Line and character level text comparison

Lines are matched by their comparison key (ASCII letters, digits and CJK
ideographs only), so punctuation and whitespace edits do not register as
changes. Characters are matched exactly. Both use the same LCS table and
backtrace, parametrized by an equality predicate. Line keys are computed once
per call.
"""

from __future__ import annotations

import operator
import re
from typing import Callable, Sequence, TypeVar

from models.diff import CharDiffItem, DiffItem, InlineHTML

T = TypeVar("T")

Equality = Callable[[T, T], bool]
Escaper = Callable[[str], str]
Op = tuple[str, int, int]  # (type, old_index, new_index), indices 0-based

_NON_TEXT_RE = re.compile(r"[^\u4e00-\u9fa5a-zA-Z0-9]")

NO_CHANGES = "No changes"
EMPTY_LINE_PLACEHOLDER = "(empty line)"


# ========== Comparison Policy ==========


def comparison_key(line: str) -> str:
    """Reduce a line to its letters, digits and CJK ideographs"""
    return _NON_TEXT_RE.sub("", line)


def text_equal(line1: str, line2: str) -> bool:
    """Whether two lines match ignoring punctuation and whitespace"""
    return comparison_key(line1) == comparison_key(line2)


def split_lines(text: str) -> list[str]:
    return text.split("\n")


def line_count(text: str) -> int:
    return text.count("\n") + 1


def escape_html(text: str) -> str:
    """Escape text the way a DOM text node serializes it"""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


# ========== LCS Primitive ==========


def lcs_table(old: Sequence[T], new: Sequence[T], equal: Equality = operator.eq) -> list[list[int]]:
    """Build the (m+1) x (n+1) LCS length table under the given equality"""
    m, n = len(old), len(new)
    dp = [[0] * (n + 1) for _ in range(m + 1)]

    for i in range(1, m + 1):
        prev_row, row = dp[i - 1], dp[i]
        old_item = old[i - 1]
        for j in range(1, n + 1):
            if equal(old_item, new[j - 1]):
                row[j] = prev_row[j - 1] + 1
            else:
                row[j] = max(prev_row[j], row[j - 1])

    return dp


def backtrace(
    old: Sequence[T],
    new: Sequence[T],
    equal: Equality = operator.eq,
    dp: list[list[int]] | None = None,
) -> list[Op]:
    """
    Walk the LCS table from (m, n) back to (0, 0) and return the edit ops in
    forward order.

    On a DP tie the new side advances first, so within a changed block the
    added items end up after the removed ones. Output stability depends on
    this rule.
    """
    if dp is None:
        dp = lcs_table(old, new, equal)

    ops: list[Op] = []
    i, j = len(old), len(new)

    while i > 0 or j > 0:
        if i > 0 and j > 0 and equal(old[i - 1], new[j - 1]):
            ops.append(("unchanged", i - 1, j - 1))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or dp[i][j - 1] >= dp[i - 1][j]):
            ops.append(("added", i, j - 1))
            j -= 1
        else:
            ops.append(("removed", i - 1, j))
            i -= 1

    ops.reverse()
    return ops


def lcs_length(old: Sequence[T], new: Sequence[T], equal: Equality = operator.eq) -> int:
    return lcs_table(old, new, equal)[len(old)][len(new)]


# ========== Line Diff ==========


def diff(old_text: str, new_text: str) -> list[DiffItem]:
    """Compute the line-level diff script between two texts"""
    old_lines = split_lines(old_text)
    new_lines = split_lines(new_text)
    old_keys = [comparison_key(line) for line in old_lines]
    new_keys = [comparison_key(line) for line in new_lines]

    anchor_keys = [
        new_keys[new_index]
        for op_type, _, new_index in backtrace(old_keys, new_keys)
        if op_type == "unchanged"
    ]

    result: list[DiffItem] = []
    old_index = 0
    new_index = 0

    for anchor_key in anchor_keys:
        while old_index < len(old_lines) and old_keys[old_index] != anchor_key:
            result.append(DiffItem(type="removed", content=old_lines[old_index], line_number=old_index + 1))
            old_index += 1

        while new_index < len(new_lines) and new_keys[new_index] != anchor_key:
            result.append(DiffItem(type="added", content=new_lines[new_index], line_number=new_index + 1))
            new_index += 1

        # Unchanged lines carry the new-side content
        result.append(DiffItem(type="unchanged", content=new_lines[new_index], line_number=new_index + 1))
        old_index += 1
        new_index += 1

    for index in range(old_index, len(old_lines)):
        result.append(DiffItem(type="removed", content=old_lines[index], line_number=index + 1))
    for index in range(new_index, len(new_lines)):
        result.append(DiffItem(type="added", content=new_lines[index], line_number=index + 1))

    return result


def get_summary(diff_script: Sequence[DiffItem]) -> str:
    """Summarize a diff script as added/removed line counts"""
    added = sum(1 for item in diff_script if item.type == "added")
    removed = sum(1 for item in diff_script if item.type == "removed")

    if added == 0 and removed == 0:
        return NO_CHANGES

    parts = []
    if added > 0:
        parts.append(f"+{added} lines")
    if removed > 0:
        parts.append(f"-{removed} lines")
    return ", ".join(parts)


def get_similarity(old_text: str, new_text: str) -> int:
    """Percentage of matching lines relative to the longer text (0-100)"""
    if old_text == new_text:
        return 100
    if not old_text or not new_text:
        return 0

    old_keys = [comparison_key(line) for line in split_lines(old_text)]
    new_keys = [comparison_key(line) for line in split_lines(new_text)]
    common = lcs_length(old_keys, new_keys)
    longest = max(len(old_keys), len(new_keys))

    # round half up in integer arithmetic; 100 is reserved for identical texts
    return min((200 * common + longest) // (2 * longest), 99)


# ========== Character Diff ==========


def diff_chars(old_str: str, new_str: str) -> list[CharDiffItem]:
    """Character-level diff with adjacent same-type runs merged"""
    if old_str == new_str:
        return [CharDiffItem(type="unchanged", text=new_str)]
    if not old_str:
        return [CharDiffItem(type="added", text=new_str)]
    if not new_str:
        return [CharDiffItem(type="removed", text=old_str)]

    runs: list[list[str]] = []  # [type, text]
    for op_type, old_index, new_index in backtrace(old_str, new_str):
        char = old_str[old_index] if op_type == "removed" else new_str[new_index]
        if runs and runs[-1][0] == op_type:
            runs[-1][1] += char
        else:
            runs.append([op_type, char])

    return [CharDiffItem(type=op_type, text=text) for op_type, text in runs]


# ========== HTML Assembly ==========


def get_inline_html(old_line: str, new_line: str, escape: Escaper = escape_html) -> InlineHTML:
    """Build two-pane markup highlighting the changed characters of a line pair"""
    old_html = []
    new_html = []

    for item in diff_chars(old_line, new_line):
        text = escape(item.text)
        if item.type == "unchanged":
            old_html.append(text)
            new_html.append(text)
        elif item.type == "removed":
            old_html.append(f'<span class="diff-char-removed">{text}</span>')
        else:
            new_html.append(f'<span class="diff-char-added">{text}</span>')

    return InlineHTML(old_html="".join(old_html), new_html="".join(new_html))


def to_html(diff_script: Sequence[DiffItem], escape: Escaper = escape_html) -> str:
    """Render a diff script as one block per line"""
    return "".join(
        f'<div class="diff-line {item.type}">{escape(item.content) or EMPTY_LINE_PLACEHOLDER}</div>'
        for item in diff_script
    )


class DiffEngine:
    """Stateless facade over the diff functions"""

    diff = staticmethod(diff)
    get_summary = staticmethod(get_summary)
    get_similarity = staticmethod(get_similarity)
    diff_chars = staticmethod(diff_chars)
    get_inline_html = staticmethod(get_inline_html)
    to_html = staticmethod(to_html)
