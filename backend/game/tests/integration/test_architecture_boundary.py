"""Architectural boundary tests enforcing layer dependency rules.

Layer dependency direction (allowed):
  server -> session -> logic
  session -> shared
  server -> shared

Forbidden (runtime imports):
  logic -> session, server, shared
  session -> server
  shared -> game
"""

import ast
from pathlib import Path

_GAME_ROOT = Path(__file__).resolve().parents[2]
_SHARED_ROOT = _GAME_ROOT.parent / "shared"


def _collect_runtime_import_targets(source_dir: Path) -> list[tuple[str, int, str]]:
    """Parse all .py files and return (filename, lineno, module) for runtime imports.

    Imports inside `if TYPE_CHECKING:` blocks are skipped: they are
    type-only and do not couple layers at runtime.
    """
    results: list[tuple[str, int, str]] = []
    for py_file in source_dir.rglob("*.py"):
        tree = ast.parse(py_file.read_text(), filename=str(py_file))
        type_checking_ranges = _find_type_checking_ranges(tree)
        for node in ast.walk(tree):
            if not isinstance(node, (ast.Import, ast.ImportFrom)):
                continue
            if any(start <= node.lineno <= end for start, end in type_checking_ranges):
                continue
            if isinstance(node, ast.Import):
                results.extend((py_file.name, node.lineno, alias.name) for alias in node.names)
            elif node.module is not None:
                results.append((py_file.name, node.lineno, node.module))
    return results


def _find_type_checking_ranges(tree: ast.Module) -> list[tuple[int, int]]:
    """Find line ranges of `if TYPE_CHECKING:` blocks."""
    ranges: list[tuple[int, int]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.If) and isinstance(node.test, ast.Name) and node.test.id == "TYPE_CHECKING":
            start = node.lineno
            end = max(child.lineno for child in ast.walk(node) if hasattr(child, "lineno"))
            ranges.append((start, end))
    return ranges


def _violations(source_dir: Path, *forbidden_prefixes: str) -> list[str]:
    return [
        f"{name}:{lineno} {module}"
        for name, lineno, module in _collect_runtime_import_targets(source_dir)
        if module.startswith(forbidden_prefixes)
    ]


def test_game_logic_is_self_contained():
    """game.logic runs without storage, session or HTTP layers."""
    violations = _violations(_GAME_ROOT / "logic", "game.session", "game.server", "shared")
    assert violations == [], f"game.logic imports outer layers: {violations}"


def test_session_does_not_import_server():
    """game.session must not depend on the HTTP layer."""
    violations = _violations(_GAME_ROOT / "session", "game.server", "starlette")
    assert violations == [], f"game.session imports from the HTTP layer: {violations}"


def test_shared_does_not_import_game():
    """shared is infrastructure only and knows nothing about rooms."""
    violations = _violations(_SHARED_ROOT, "game")
    assert violations == [], f"shared imports from game: {violations}"


def _has_future_annotations(tree: ast.Module) -> bool:
    return any(
        isinstance(node, ast.ImportFrom)
        and node.module == "__future__"
        and any(alias.name == "annotations" for alias in node.names)
        for node in tree.body
    )


def test_type_checking_imports_are_deferred():
    """Names imported under TYPE_CHECKING only exist for the type checker.

    Annotations that use them are evaluated eagerly on Python 3.12 and 3.13
    unless the module defers them with `from __future__ import annotations`.
    """
    missing: list[str] = []
    for root in (_GAME_ROOT, _SHARED_ROOT):
        for py_file in root.rglob("*.py"):
            tree = ast.parse(py_file.read_text(), filename=str(py_file))
            if _find_type_checking_ranges(tree) and not _has_future_annotations(tree):
                missing.append(str(py_file.relative_to(root.parent)))
    assert missing == [], f"TYPE_CHECKING imports without deferred annotations: {missing}"
