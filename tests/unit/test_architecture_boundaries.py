import ast
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


def _imports(py_file: Path):
    tree = ast.parse(py_file.read_text(encoding="utf-8"), filename=str(py_file))
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom):
            yield node.lineno, node.module or ""


@pytest.mark.parametrize("layer,forbidden", [
    ("pipeline", "vidshelf.ui"),
    ("domain", "vidshelf.infrastructure"),
    ("domain", "vidshelf.pipeline"),
    ("infrastructure", "vidshelf.ui"),
])
def test_layer_does_not_import_forbidden_layer(layer, forbidden):
    layer_dir = REPO_ROOT / "vidshelf" / layer

    violations = []
    for py_file in layer_dir.rglob("*.py"):
        rel_path = py_file.relative_to(REPO_ROOT)
        for lineno, name in _imports(py_file):
            if name == forbidden or name.startswith(forbidden + "."):
                violations.append(f"{rel_path}:{lineno} imports {name}")

    assert not violations, f"vidshelf/{layer} must not import {forbidden}:\n" + "\n".join(violations)
