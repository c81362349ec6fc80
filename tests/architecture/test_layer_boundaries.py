"""
Layer boundaries between the inventory packages.

1. inventory_kernel/** may NOT import inventory_engines, inventory_services
   or inventory_ingestion.  The kernel never depends upward.

2. inventory_engines/** is pure: no sqlalchemy, no ORM models, no session
   plumbing, no services.

3. inventory_ingestion/** reaches the ledger only through
   inventory_services.  It never touches models, selectors or sqlalchemy.

4. Only inventory_services (and the kernel itself) may import the kernel's
   write services.

These tests read source code via AST.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(
                        f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'"
                    )
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:

    FORBIDDEN_PREFIXES = (
        "inventory_engines",
        "inventory_services",
        "inventory_ingestion",
    )

    def test_packages_exist(self):
        for package in ("inventory_kernel", "inventory_engines",
                        "inventory_services", "inventory_ingestion"):
            assert _python_files(package), f"{package} has no modules"

    def test_kernel_does_not_import_upward(self):
        violations = _violations("inventory_kernel", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "Kernel boundary violation, inventory_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )


class TestEnginePurity:

    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "psycopg2",
        "sqlite3",
        "inventory_kernel.db",
        "inventory_kernel.models",
        "inventory_kernel.services",
        "inventory_kernel.selectors",
        "inventory_services",
        "inventory_ingestion",
    )

    def test_engines_have_no_storage_imports(self):
        violations = _violations("inventory_engines", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "Engine purity violation, inventory_engines/** must stay free of "
            "storage and services:\n" + "\n".join(violations)
        )


class TestIngestionUsesServiceFacade:

    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "inventory_kernel.models",
        "inventory_kernel.selectors",
        "inventory_kernel.services",
        "inventory_kernel.db.engine",
        "inventory_engines",
        "inventory_services.sale_coordinator",
    )

    def test_ingestion_goes_through_inventory_service(self):
        violations = _violations("inventory_ingestion", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "Ingestion boundary violation, inventory_ingestion/** must use "
            "InventoryService:\n" + "\n".join(violations)
        )


class TestKernelWriteServicesGate:

    GATED = (
        "inventory_kernel.services.purchase_recorder",
        "inventory_services.sale_coordinator",
    )

    def test_engines_and_ingestion_do_not_write(self):
        violations = _violations("inventory_engines", self.GATED)
        violations += _violations("inventory_ingestion", self.GATED)
        assert not violations, "\n".join(violations)
