"""Tests for project manifest loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from sitelaunch.core.config import DEFAULT_SERVICE
from sitelaunch.publish.project import ProjectError, load_project, strip_scheme


def _write_manifest(path: Path, data: object) -> None:
    (path / "package.json").write_text(json.dumps(data), encoding="utf-8")


class TestLoadProject:
    """Tests for load_project."""

    def test_full_manifest(self, tmp_path: Path) -> None:
        """Should read name, tasks, sites and launch directory."""
        _write_manifest(
            tmp_path,
            {
                "name": "my-site",
                "scripts": {"build": "vite build", "dev": "vite"},
                "bob": {
                    "directory": "dist",
                    "sites": {
                        "production": {
                            "domain": "example.com",
                            "service": "https://host.test",
                            "team": "t1",
                        },
                        "staging": {"domain": "staging.example.com"},
                    },
                },
            },
        )
        project = load_project(tmp_path)

        assert project.name == "my-site"
        assert project.path == tmp_path.resolve()
        assert project.launch_directory == "dist"
        assert project.build_task is not None
        assert project.build_task.command == "vite build"

        production = project.get_site("production")
        assert production is not None
        assert production.service == "host.test"
        assert production.team_id == "t1"

        staging = project.get_site("staging")
        assert staging is not None
        assert staging.service == DEFAULT_SERVICE
        assert staging.team_id is None

    def test_minimal_manifest(self, tmp_path: Path) -> None:
        _write_manifest(tmp_path, {})
        project = load_project(tmp_path)
        assert project.name == "Unnamed Project"
        assert project.sites == []
        assert project.build_task is None
        assert project.launch_directory is None

    def test_skips_invalid_site(self, tmp_path: Path) -> None:
        _write_manifest(tmp_path, {"bob": {"sites": {"bad": "example.com", "ok": {"domain": "a.b"}}}})
        assert [s.name for s in load_project(tmp_path).sites] == ["ok"]

    def test_missing_manifest(self, tmp_path: Path) -> None:
        with pytest.raises(ProjectError, match="No package.json found"):
            load_project(tmp_path)

    def test_invalid_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(ProjectError, match="Failed to read"):
            load_project(tmp_path)

    def test_not_an_object(self, tmp_path: Path) -> None:
        _write_manifest(tmp_path, ["a", "b"])
        with pytest.raises(ProjectError, match="JSON object"):
            load_project(tmp_path)


class TestStripScheme:
    """Tests for strip_scheme."""

    def test_strips(self) -> None:
        assert strip_scheme("https://xmit.co") == "xmit.co"
        assert strip_scheme("http://localhost:8080") == "localhost:8080"
        assert strip_scheme("xmit.co") == "xmit.co"
