"""Project manifest loading.

A project is a directory with a ``package.json``. Its ``scripts`` become
tasks (``build`` runs before every launch) and its ``bob`` section declares
publication sites and an optional launch sub-directory::

    {
      "name": "my-site",
      "scripts": {"build": "vite build"},
      "bob": {
        "directory": "dist",
        "sites": {
          "production": {"domain": "example.com", "service": "xmit.co"}
        }
      }
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sitelaunch.core.config import DEFAULT_SERVICE
from sitelaunch.publish.types import Project, Site, Task

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"


class ProjectError(Exception):
    """The project manifest is missing or invalid."""


def strip_scheme(service: str) -> str:
    """Drop an http(s):// prefix from a service identity."""
    for prefix in ("https://", "http://"):
        if service.startswith(prefix):
            return service[len(prefix):]
    return service


def _parse_sites(raw: Any) -> list[Site]:
    if not isinstance(raw, dict):
        return []
    sites = []
    for name, config in raw.items():
        if not isinstance(config, dict):
            logger.warning(f"Ignoring site {name!r}: expected an object")
            continue
        service = config.get("service") or DEFAULT_SERVICE
        team = config.get("team")
        sites.append(
            Site(
                name=str(name),
                domain=str(config.get("domain") or ""),
                service=strip_scheme(str(service)),
                team_id=str(team) if team else None,
            )
        )
    return sites


def project_from_manifest(path: Path, data: dict[str, Any]) -> Project:
    """Build a Project from parsed package.json content.

    Args:
        path: Project root directory.
        data: Parsed manifest.
    """
    scripts = data.get("scripts")
    tasks = []
    if isinstance(scripts, dict):
        tasks = [Task(name=str(k), command=str(v)) for k, v in scripts.items()]

    bob = data.get("bob")
    bob = bob if isinstance(bob, dict) else {}
    directory = bob.get("directory")

    return Project(
        name=str(data.get("name") or "Unnamed Project"),
        path=path,
        tasks=tasks,
        sites=_parse_sites(bob.get("sites")),
        launch_directory=str(directory) if directory else None,
    )


def load_project(path: Path) -> Project:
    """Load a project from its directory.

    Raises:
        ProjectError: If package.json is missing or not a JSON object.
    """
    path = Path(path).expanduser().resolve()
    manifest = path / MANIFEST_NAME
    if not manifest.is_file():
        raise ProjectError(f"No {MANIFEST_NAME} found in {path}")
    try:
        data = json.loads(manifest.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ProjectError(f"Failed to read {manifest}: {e}") from e
    if not isinstance(data, dict):
        raise ProjectError(f"{manifest} must contain a JSON object")
    return project_from_manifest(path, data)
