"""
Structure lint tests.
Verify that the component skeleton exists and follows conventions.
"""

from pathlib import Path

import yaml

PROJECT_ROOT = Path(__file__).parent.parent
PACKAGE = PROJECT_ROOT / "assetstore"


class TestProjectStructure:
    """Verify project structure follows the component layout."""

    def test_core_directories_exist(self) -> None:
        """Core entities and ports must exist."""
        assert (PACKAGE / "core").is_dir()
        assert (PACKAGE / "core" / "ports").is_dir()
        assert (PACKAGE / "core" / "entities.py").is_file()

    def test_components_exist(self) -> None:
        for name in ("assets", "retention"):
            component = PACKAGE / "components" / name
            assert component.is_dir(), f"Missing component {name}"
            assert (component / "component.py").is_file()
            assert (component / "models.py").is_file()

    def test_shell_directories_exist(self) -> None:
        """API and app shell must exist."""
        assert (PACKAGE / "api" / "routes").is_dir()
        assert (PACKAGE / "app_shell").is_dir()

    def test_adapters_directory_exists(self) -> None:
        assert (PACKAGE / "adapters").is_dir()
        assert (PACKAGE / "adapters" / "sqlite").is_dir()

    def test_migrations_shipped(self) -> None:
        migrations = sorted((PACKAGE / "adapters" / "sqlite" / "migrations").glob("*.sql"))
        assert migrations, "No migrations found"
        assert migrations[0].name.startswith("0001_")

    def test_tests_structure_exists(self) -> None:
        """Test directories must follow conventions."""
        assert (PROJECT_ROOT / "tests" / "unit").is_dir()
        assert (PROJECT_ROOT / "tests" / "integration").is_dir()
        assert (PROJECT_ROOT / "tests" / "regression").is_dir()

    def test_init_files_present(self) -> None:
        """Packages that re-export a public API must have __init__.py files."""
        packages = [
            "core/ports",
            "components/assets",
            "components/retention",
        ]
        for pkg in packages:
            init_file = PACKAGE / pkg / "__init__.py"
            assert init_file.is_file(), f"Missing __init__.py in {pkg}"

    def test_rules_file_is_valid_yaml(self) -> None:
        with open(PROJECT_ROOT / "rules.yaml") as f:
            data = yaml.safe_load(f)
        assert {"uploads", "thumbnails", "retention", "rate_limits"} <= set(data)
