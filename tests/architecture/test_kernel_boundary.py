"""
Kernel Boundary & Invariants Contract.

1. grants_kernel/** may NOT import grants_services or grants_config.
   The kernel never depends upward.

2. grants_config may NOT import grants_services.

3. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST; they cannot break anything.
"""

import ast
import glob
from pathlib import Path

from grants_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

ROOT = Path(__file__).resolve().parent.parent.parent


def _python_files(package: str) -> list[str]:
    return sorted(glob.glob(str(ROOT / package / "**" / "*.py"), recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
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
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath}:{lineno} imports '{module}'")
    return found


class TestKernelNoUpwardDependencies:
    def test_kernel_files_found(self):
        assert len(_python_files("grants_kernel")) > 10

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("grants_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation: grants_kernel/** must not import "
            "grants_services or grants_config:\n" + "\n".join(violations)
        )

    def test_config_does_not_import_services(self):
        violations = _violations("grants_config", ("grants_services",))
        assert not violations, "\n".join(violations)


class TestDomainIsPure:
    def test_domain_has_no_orm_imports(self):
        violations = _violations("grants_kernel/domain", ("sqlalchemy", "grants_kernel.models"))
        assert not violations, "\n".join(violations)


class TestInvariantDeclaration:
    def test_invariants_declared(self):
        assert set(ALL_KERNEL_INVARIANTS) == set(KernelInvariant)
        assert KernelInvariant.SEQUENCE_MONOTONICITY in ALL_KERNEL_INVARIANTS
