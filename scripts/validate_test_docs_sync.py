#!/usr/bin/env python3
"""
Check that docs/test_scenarios_business_summary.md matches tests/test_integration_scenarios.py.

Reports:
1. Test classes or methods missing from the summary (errors)
2. Methods documented under the wrong class section (errors)
3. Documented tests that no longer exist (warnings)

Run: python scripts/validate_test_docs_sync.py
"""

import ast
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
TEST_FILE = PROJECT_ROOT / "tests" / "test_integration_scenarios.py"
DOC_FILE = PROJECT_ROOT / "docs" / "test_scenarios_business_summary.md"

CLASS_MARKER = re.compile(r"\*\*Test Class\*\*:\s*`(Test\w+)`")
METHOD_MARKER = re.compile(r"\*\*Test Method\*\*:\s*`(test_\w+)`")


@dataclass
class SyncReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not self.errors and not self.warnings


def collect_tests(test_file: Path) -> dict[str, list[str]]:
    """Map each top-level Test* class to its test_* methods, in source order."""
    tree = ast.parse(test_file.read_text(), filename=str(test_file))
    tests = {}
    for node in tree.body:
        if isinstance(node, ast.ClassDef) and node.name.startswith("Test"):
            tests[node.name] = [
                item.name
                for item in node.body
                if isinstance(item, ast.FunctionDef) and item.name.startswith("test_")
            ]
    return tests


def collect_documented(doc_file: Path) -> dict[str, list[str]]:
    """Map each documented class to the methods listed beneath it."""
    documented: dict[str, list[str]] = {}
    current = None
    for line in doc_file.read_text().splitlines():
        class_match = CLASS_MARKER.search(line)
        if class_match:
            current = class_match.group(1)
            documented.setdefault(current, [])
            continue
        method_match = METHOD_MARKER.search(line)
        if method_match:
            # Methods listed before any class heading are grouped under ""
            documented.setdefault(current or "", []).append(method_match.group(1))
    return documented


def compare(tests: dict[str, list[str]], documented: dict[str, list[str]]) -> SyncReport:
    report = SyncReport()
    documented_methods = {m: cls for cls, methods in documented.items() for m in methods}
    test_methods = {m for methods in tests.values() for m in methods}

    for cls, methods in tests.items():
        if cls not in documented:
            report.errors.append(f"Missing class documentation: {cls}")
        for method in methods:
            doc_cls = documented_methods.get(method)
            if doc_cls is None:
                report.errors.append(f"Missing method documentation: {cls}.{method}")
            elif doc_cls != cls and cls in documented:
                report.errors.append(f"{method} is documented under {doc_cls or 'no class'}, expected {cls}")

    for cls in documented:
        if cls and cls not in tests:
            report.warnings.append(f"Documented class no longer exists: {cls}")
    for method in documented_methods:
        if method not in test_methods:
            report.warnings.append(f"Documented method no longer exists: {method}")

    return report


def main() -> int:
    for path in (TEST_FILE, DOC_FILE):
        if not path.exists():
            print(f"❌ File not found: {path}")
            return 1

    tests = collect_tests(TEST_FILE)
    report = compare(tests, collect_documented(DOC_FILE))

    print(f"Checked {sum(len(m) for m in tests.values())} tests in {len(tests)} classes")
    for error in report.errors:
        print(f"❌ {error}")
    for warning in report.warnings:
        print(f"⚠️  {warning}")
    if report.in_sync:
        print("✅ Business summary is in sync")

    return 1 if report.errors else 0


if __name__ == "__main__":
    sys.exit(main())
