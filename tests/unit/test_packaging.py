"""Checks that pyproject.toml declares what the package actually imports."""

import ast
import re
import sys
from pathlib import Path

import tomli

ROOT = Path(__file__).parent.parent.parent
PACKAGE_DIR = ROOT / "talos_local"

# Import names that differ from their distribution names
DISTRIBUTION_NAMES = {"yaml": "pyyaml"}


def load_pyproject_toml():
    with open(ROOT / "pyproject.toml", "rb") as f:
        return tomli.load(f)


def declared_distributions(requirements: list[str]) -> set[str]:
    return {re.split(r"[><=!~\[;\s]", req, maxsplit=1)[0].lower() for req in requirements}


def third_party_imports() -> set[str]:
    names = set()
    for source in PACKAGE_DIR.rglob("*.py"):
        tree = ast.parse(source.read_text())
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                names.update(alias.name.split(".")[0] for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
                names.add(node.module.split(".")[0])
    return {n for n in names if n not in sys.stdlib_module_names and n != "talos_local"}


def test_pyproject_toml_has_required_sections():
    pyproject = load_pyproject_toml()

    assert "name" in pyproject["project"]
    assert "version" in pyproject["project"]
    assert "dependencies" in pyproject["project"]
    assert "requires" in pyproject["build-system"]
    assert "build-backend" in pyproject["build-system"]


def test_every_runtime_import_is_declared():
    declared = declared_distributions(load_pyproject_toml()["project"]["dependencies"])

    for name in third_party_imports():
        distribution = DISTRIBUTION_NAMES.get(name, name)
        assert distribution in declared, f"'{name}' is imported but '{distribution}' is not declared"


def test_dependencies_are_constrained():
    for dep in load_pyproject_toml()["project"]["dependencies"]:
        assert any(op in dep for op in (">=", "==", "~=")), f"'{dep}' has no version constraint"


def test_test_tools_in_dev_extra():
    dev = declared_distributions(load_pyproject_toml()["project"]["optional-dependencies"]["dev"])

    assert {"pytest", "hypothesis", "tomli"} <= dev


def test_console_script_points_at_cli():
    scripts = load_pyproject_toml()["project"]["scripts"]

    assert scripts["talos-local"] == "talos_local.cli:app"
