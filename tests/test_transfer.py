import ast
from datetime import datetime

import pytest

from services import transfer


def _prompt(title, content, tags=()):
    return {
        "id": title.lower().replace(" ", "-"),
        "title": title,
        "content": content,
        "tags": list(tags),
        "createdAt": "2024-05-01T08:00:00.000Z",
        "updatedAt": "2024-05-02T09:30:00.000Z",
        "history": [],
    }


@pytest.mark.parametrize(
    "title,expected",
    [
        ("My Prompt!", "My_Prompt"),
        ("  code -- review  ", "code_review"),
        ("123 go", "prompt_123_go"),
        ("写作 助手", "写作_助手"),
        ("class", "class_"),
        ("!!!", "untitled"),
        ("", "untitled"),
        (None, "untitled"),
    ],
)
def test_title_to_var_name(title, expected):
    assert transfer.title_to_var_name(title) == expected


def test_var_name_to_title():
    assert transfer.var_name_to_title("code_review_helper") == "Code Review Helper"


class TestPythonExport:
    def test_module_layout(self):
        source = transfer.export_python(
            [_prompt("Writer", "Write a poem", ["fun", "poetry"])],
            now=datetime(2024, 5, 3, 10, 0, 0),
        )

        assert "Exported at: 2024-05-03 10:00:00" in source
        assert "# 1. Writer\n# Tags: fun, poetry\n# Updated: 2024-05-02 09:30:00\n" in source
        assert 'Writer = """Write a poem"""' in source
        assert "ALL_PROMPTS = {\n    'Writer': Writer,\n}" in source

    def test_duplicate_names_get_suffix(self):
        source = transfer.export_python([_prompt("Same", "one"), _prompt("Same", "two")])
        tree = ast.parse(source)
        names = [node.targets[0].id for node in tree.body if isinstance(node, ast.Assign)]
        assert names == ["Same", "Same_1", "ALL_PROMPTS"]

    def test_export_is_importable(self):
        prompts = [
            _prompt("Quotes", 'He said """hi""" and left "'),
            _prompt("Backslash", "path\\to\\file and \\n literal"),
            _prompt("Multi line", "line 1\n\nline 3\n"),
            _prompt("中文标题", "你好", ["标签"]),
        ]

        imported = transfer.import_python(transfer.export_python(prompts), existing_contents=[])

        assert [(p["title"], p["content"], p["tags"]) for p in imported] == [
            (p["title"], p["content"], p["tags"]) for p in prompts
        ]


class TestPythonImport:
    def test_title_falls_back_to_variable_name(self):
        imported = transfer.parse_python('code_review = """Review this code"""\n')
        assert imported[0]["title"] == "Code Review"
        assert imported[0]["content"] == "Review this code"
        assert imported[0]["history"] == []

    def test_skips_non_prompt_assignments(self):
        source = 'COUNT = 3\nA = """a"""\nALL_PROMPTS = {"A": A}\nx, y = "1", "2"\n'
        assert [p["content"] for p in transfer.parse_python(source)] == ["a"]

    def test_skips_existing_contents(self):
        source = 'A = """keep"""\nB = """already here"""\n'
        imported = transfer.import_python(source, existing_contents=["already here"])
        assert [p["content"] for p in imported] == ["keep"]

    def test_syntax_error(self):
        with pytest.raises(ValueError):
            transfer.parse_python('A = """unterminated')


class TestJSON:
    def test_export(self):
        data = transfer.export_json([_prompt("A", "a")])
        assert data["version"] == "1.0"
        assert data["exportedAt"].endswith("Z")
        assert [p["id"] for p in data["prompts"]] == ["a"]

    def test_import_skips_existing_ids(self):
        data = {"prompts": [_prompt("A", "a"), _prompt("B", "b")]}
        assert [p["id"] for p in transfer.import_json(data, existing_ids=["a"])] == ["b"]

    @pytest.mark.parametrize("data", [[], {"items": []}, {"prompts": "nope"}])
    def test_import_rejects_invalid_backups(self, data):
        with pytest.raises(ValueError):
            transfer.import_json(data, existing_ids=[])
