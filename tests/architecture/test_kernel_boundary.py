"""
Kernel Boundary & Invariants Contract.

Tests that enforce the kernel's architectural boundaries:

1. stock_kernel/** may NOT import stock_services or stock_config.  The
   kernel never depends upward.

2. stock_kernel/domain/** is the pure core: no ORM, no database driver,
   no kernel db/models/services imports.

3. Selectors only read: no add/delete/flush/commit calls.

4. Kernel services never commit or roll back; the operations layer owns
   every transaction boundary.

5. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST; they cannot break anything.
"""

import ast
import glob
from pathlib import Path

from stock_kernel.invariants import (
    ALL_STOCK_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    StockInvariant,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(root: str) -> list[str]:
    """Return all .py files under root, relative to cwd."""
    return sorted(glob.glob(f"{root}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    try:
        source = Path(filepath).read_text()
        tree = ast.parse(source, filename=filepath)
    except (SyntaxError, UnicodeDecodeError):
        return []

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _method_calls(
    filepath: str,
    names: set[str],
    receiver: str | None = None,
) -> list[tuple[int, str]]:
    """(line_number, attribute) for every ``x.<name>(...)`` call in a file.

    With ``receiver``, only calls whose target expression ends in that name
    (``session.commit()``, ``self.session.commit()``) count.
    """
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    found = []
    for node in ast.walk(tree):
        if (
            isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and node.func.attr in names
            and (receiver is None or _receiver_name(node.func.value) == receiver)
        ):
            found.append((node.lineno, node.func.attr))
    return found


def _receiver_name(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _matches(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(f"{prefix}.")


# ---------------------------------------------------------------------------
# Test: Kernel has no upward dependencies
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:
    """stock_kernel/** must not import stock_services or stock_config."""

    def test_kernel_does_not_import_forbidden_packages(self):
        violations: list[str] = []

        for filepath in _python_files("stock_kernel"):
            for lineno, module in _extract_imports(filepath):
                for prefix in FORBIDDEN_KERNEL_IMPORTS:
                    if _matches(module, prefix):
                        violations.append(
                            f"  {filepath}:{lineno} imports '{module}'"
                        )

        assert not violations, (
            "Kernel boundary violation: stock_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )

    def test_kernel_files_found(self):
        assert _python_files("stock_kernel"), "run tests from the repository root"


# ---------------------------------------------------------------------------
# Test: Kernel domain purity
# ---------------------------------------------------------------------------

class TestKernelDomainPurity:
    """stock_kernel/domain/** must not import ORM, DB or service packages."""

    FORBIDDEN_MODULES = (
        "sqlalchemy",
        "psycopg2",
        "psycopg",
        "sqlite3",
        "stock_kernel.db",
        "stock_kernel.models",
        "stock_kernel.services",
        "stock_kernel.selectors",
    )

    def test_domain_no_orm_imports(self):
        violations: list[str] = []

        for filepath in _python_files("stock_kernel/domain"):
            for lineno, module in _extract_imports(filepath):
                for forbidden in self.FORBIDDEN_MODULES:
                    if _matches(module, forbidden):
                        violations.append(
                            f"  {filepath}:{lineno} imports '{module}'"
                        )

        assert not violations, (
            "Domain purity violation: stock_kernel/domain/** must not "
            "import ORM or DB packages:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Read/write separation
# ---------------------------------------------------------------------------

class TestSelectorsAreReadOnly:

    WRITE_CALLS = {"add", "add_all", "delete", "flush", "commit", "merge"}

    def test_no_writes_in_selectors(self):
        violations = [
            f"  {filepath}:{lineno} calls .{name}()"
            for filepath in _python_files("stock_kernel/selectors")
            for lineno, name in _method_calls(filepath, self.WRITE_CALLS)
        ]
        assert not violations, (
            "Selectors must not write:\n" + "\n".join(violations)
        )


class TestServicesDoNotOwnTransactions:

    def test_no_commit_in_kernel_services(self):
        violations = [
            f"  {filepath}:{lineno} calls .{name}()"
            for filepath in _python_files("stock_kernel/services")
            for lineno, name in _method_calls(filepath, {"commit", "rollback"}, receiver="session")
        ]
        assert not violations, (
            "Kernel services flush only; the caller commits:\n"
            + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Test: Invariants declaration
# ---------------------------------------------------------------------------

class TestInvariantsDeclaration:

    def test_all_invariants_listed(self):
        assert ALL_STOCK_INVARIANTS == frozenset(StockInvariant)
        assert len(ALL_STOCK_INVARIANTS) >= 7

    def test_invariant_values_match_names(self):
        for invariant in StockInvariant:
            assert invariant.value == invariant.name.lower()

    def test_forbidden_imports_declared(self):
        assert set(FORBIDDEN_KERNEL_IMPORTS) == {"stock_services", "stock_config"}
