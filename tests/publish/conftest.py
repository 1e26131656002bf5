"""Shared fixtures for publishing tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from sitelaunch.publish.types import Project, Site


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    """A small static site with a duplicate file and a .git directory."""
    root = tmp_path / "site"
    root.mkdir()
    (root / "index.html").write_bytes(b"<h1>hello</h1>")
    (root / "css").mkdir()
    (root / "css" / "site.css").write_bytes(b"body { margin: 0 }")
    (root / "assets").mkdir()
    (root / "assets" / "a.txt").write_bytes(b"same bytes")
    (root / "assets" / "b.txt").write_bytes(b"same bytes")
    (root / ".git").mkdir()
    (root / ".git" / "HEAD").write_bytes(b"ref: refs/heads/main")
    return root


@pytest.fixture
def site() -> Site:
    return Site(name="production", domain="example.com", service="xmit.test")


@pytest.fixture
def project(site_dir: Path, site: Site) -> Project:
    return Project(name="demo", path=site_dir, sites=[site])
