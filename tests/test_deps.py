"""Tests for tidy_release.deps."""

from __future__ import annotations

from pathlib import Path

import tomlkit

from tidy_release.deps import dep_canonical_name, retarget_dep, rewrite_pyproject

INTERNAL = {"internal-dep", "another-internal", "group-internal"}


class TestDepCanonicalName:
    def test_simple_name(self) -> None:
        assert dep_canonical_name("requests") == "requests"

    def test_with_version_bound(self) -> None:
        assert dep_canonical_name("requests>=2.0,<3.0") == "requests"

    def test_with_extras(self) -> None:
        assert dep_canonical_name("requests[security]>=2.0") == "requests"

    def test_normalizes_underscores_and_case(self) -> None:
        assert dep_canonical_name("My_Package>=1.0") == "my-package"


class TestRetargetDep:
    def test_exact_pin(self) -> None:
        assert retarget_dep("pkg==1.4.2", "1.4.2", "1.5.0") == "pkg==1.5.0"

    def test_keeps_other_clauses(self) -> None:
        assert retarget_dep("pkg>=1.4.2,<2", "1.4.2", "1.5.0") == "pkg<2,>=1.5.0"

    def test_compatible_release(self) -> None:
        assert retarget_dep("pkg~=1.4.2", "1.4.2", "1.5.0") == "pkg~=1.5.0"

    def test_unrelated_constraint_untouched(self) -> None:
        assert retarget_dep("pkg >= 1.0", "1.4.2", "1.5.0") == "pkg >= 1.0"

    def test_unconstrained_untouched(self) -> None:
        assert retarget_dep("pkg", "1.4.2", "1.5.0") == "pkg"

    def test_matches_normalized_versions(self) -> None:
        assert retarget_dep("pkg==1.4", "1.4.0", "1.5.0") == "pkg==1.5.0"

    def test_preserves_extras_sorted_and_marker(self) -> None:
        result = retarget_dep(
            'pkg[z,a]==1.4.2; python_version >= "3.10"', "1.4.2", "1.5.0"
        )
        assert result == 'pkg[a,z]==1.5.0; python_version >= "3.10"'

    def test_wildcard_untouched(self) -> None:
        assert retarget_dep("pkg==1.4.*", "1.4.2", "1.5.0") == "pkg==1.4.*"


class TestRewritePyproject:
    def test_updates_version(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "1.0.0", "2.0.0", set())
        assert 'version = "2.0.0"' in tmp_pyproject.read_text()

    def test_retargets_main_deps(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "1.0.0", "1.1.0", INTERNAL)
        assert '"internal-dep==1.1.0"' in tmp_pyproject.read_text()

    def test_retargets_optional_deps(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "1.0.0", "1.1.0", INTERNAL)
        assert '"another-internal>=1.1.0"' in tmp_pyproject.read_text()

    def test_retargets_dependency_groups(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "1.0.0", "1.1.0", INTERNAL)
        assert '"group-internal~=1.1.0"' in tmp_pyproject.read_text()

    def test_preserves_external_deps(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "1.0.0", "1.1.0", INTERNAL)
        content = tmp_pyproject.read_text()
        assert '"requests>=2.0",' in content
        assert '"pytest>=8.0"' in content

    def test_ignores_non_internal_names(self, tmp_pyproject: Path) -> None:
        rewrite_pyproject(tmp_pyproject, "1.0.0", "1.1.0", {"unrelated"})
        assert '"internal-dep==1.0.0"' in tmp_pyproject.read_text()

    def test_skips_include_group_tables(self, tmp_path: Path) -> None:
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text(
            '[project]\nname = "a"\nversion = "1.0.0"\n\n'
            '[dependency-groups]\ndev = [{include-group = "test"}, "b==1.0.0"]\n'
            'test = ["pytest"]\n'
        )
        rewrite_pyproject(pyproject, "1.0.0", "1.0.1", {"b"})
        doc = tomlkit.parse(pyproject.read_text())
        assert doc["dependency-groups"]["dev"][1] == "b==1.0.1"
