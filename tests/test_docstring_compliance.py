from __future__ import annotations

import ast
from pathlib import Path
from typing import Iterator


def _iter_defs_without_docstring(py_path: Path) -> Iterator[tuple[int, str]]:
    """遍历缺少 docstring 的 class/def（含嵌套定义），产出 (lineno, qualname)。"""

    tree = ast.parse(py_path.read_text(encoding="utf-8"), filename=str(py_path))
    defs = (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)

    def walk(node: ast.AST, prefix: str) -> Iterator[tuple[int, str]]:
        for child in ast.iter_child_nodes(node):
            if isinstance(child, defs):
                qualname = f"{prefix}{child.name}"
                if ast.get_docstring(child) is None:
                    yield child.lineno, qualname
                yield from walk(child, f"{qualname}.")
            else:
                yield from walk(child, prefix)

    yield from walk(tree, "")


def test_docstrings_present_for_all_defs_under_src() -> None:
    """
    Docstring 合规护栏：`src` 下每个 `class/def/async def` 都必须有 docstring。
    """

    repo_root = Path(__file__).resolve().parents[1]
    missing = [
        f"- {py_path.relative_to(repo_root)}:{lineno} {qualname}"
        for py_path in sorted((repo_root / "src").rglob("*.py"))
        if "__pycache__" not in py_path.parts
        for lineno, qualname in _iter_defs_without_docstring(py_path)
    ]
    assert not missing, "missing docstrings:\n" + "\n".join(missing)
