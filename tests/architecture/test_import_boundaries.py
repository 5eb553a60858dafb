"""
Import-boundary enforcement for the three chunkflow packages.

The dependency direction is one-way:

    chunkflow_kernel  <-  chunkflow_config  <-  chunkflow_batch

1. Kernel isolation  -- chunkflow_kernel/** may not import chunkflow_config
                        or chunkflow_batch.
2. Config isolation  -- chunkflow_config/** may not import chunkflow_batch.
3. Domain purity     -- chunkflow_kernel/domain/** may not import the ORM
                        or database layer.

All scanning is done via AST, function-level imports included.
"""

import ast
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """Return (line_number, module) for every import statement in *path*."""
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            results.extend((node.lineno, alias.name) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if any(module == p or module.startswith(f"{p}.") for p in forbidden):
                found.append(f"  {path.relative_to(REPO_ROOT)}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Boundaries
# ---------------------------------------------------------------------------

class TestDependencyDirection:
    def test_packages_are_scanned(self):
        assert _python_files("chunkflow_kernel")
        assert _python_files("chunkflow_config")

    def test_kernel_imports_no_upper_layer(self):
        violations = _violations("chunkflow_kernel", ("chunkflow_config", "chunkflow_batch"))
        assert not violations, (
            "chunkflow_kernel must not depend on config or batch:\n"
            + "\n".join(violations)
        )

    def test_config_does_not_import_batch(self):
        violations = _violations("chunkflow_config", ("chunkflow_batch",))
        assert not violations, (
            "chunkflow_config must not depend on chunkflow_batch:\n"
            + "\n".join(violations)
        )


class TestKernelDomainPurity:
    def test_domain_has_no_database_imports(self):
        violations = _violations(
            "chunkflow_kernel/domain",
            ("sqlalchemy", "chunkflow_kernel.db"),
        )
        assert not violations, (
            "chunkflow_kernel.domain must stay free of database code:\n"
            + "\n".join(violations)
        )
