"""Bundle construction.

A bundle is a tree of CBOR maps describing a directory:

    directory node: {1: {name: node, ...}}
    file node:      {2: <32-byte content hash>}

File bytes never appear in the tree. They are kept in a ContentTable keyed
by hex hash and uploaded only when the server asks for them.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import cbor2

from sitelaunch.core.cancel import CancellationToken
from sitelaunch.core.hashing import hash_bytes, to_hex
from sitelaunch.publish.types import BundleError, MissingContentError

logger = logging.getLogger(__name__)

VCS_DIRECTORY = ".git"

NODE_CHILDREN = 1
NODE_HASH = 2


class ContentTable:
    """Map of content hash (hex) to file bytes.

    Identical content is stored once, however many paths reference it.
    """

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def add(self, data: bytes) -> bytes:
        """Store data and return its digest."""
        digest = hash_bytes(data)
        self._blobs.setdefault(to_hex(digest), data)
        return digest

    def get(self, content_hash: str) -> bytes | None:
        """Look up content by hex hash."""
        return self._blobs.get(content_hash)

    def require(self, content_hash: str) -> bytes:
        """Look up content by hex hash.

        Raises:
            MissingContentError: If the hash was never bundled.
        """
        try:
            return self._blobs[content_hash]
        except KeyError:
            raise MissingContentError(content_hash) from None

    def clear(self) -> None:
        """Forget all content."""
        self._blobs.clear()

    @property
    def total_size(self) -> int:
        """Sum of stored blob sizes in bytes."""
        return sum(len(b) for b in self._blobs.values())

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)


@dataclass
class Bundle:
    """A built bundle.

    Attributes:
        root: Root directory node, ready for CBOR encoding.
        encoded: Canonical CBOR serialization of root.
        hash: Digest of encoded; the bundle identifier.
        file_count: Number of files in the tree.
    """

    root: dict[int, Any]
    encoded: bytes
    hash: bytes
    file_count: int

    @property
    def hash_hex(self) -> str:
        """Bundle identifier as hex."""
        return to_hex(self.hash)


def encode_node(node: dict[int, Any]) -> bytes:
    """Serialize a node deterministically."""
    return cbor2.dumps(node, canonical=True)


def resolve_bundle_root(project_path: Path, launch_directory: str | None = None) -> Path:
    """Pick the directory to publish.

    Args:
        project_path: Project root.
        launch_directory: Optional configured sub-directory.

    Raises:
        BundleError: If a sub-directory is configured but does not exist.
    """
    if not launch_directory:
        return Path(project_path)
    root = Path(project_path) / launch_directory
    if not root.is_dir():
        raise BundleError(
            f'Configured launch directory "{launch_directory}" does not exist. '
            "Build the project or update bob.directory in package.json."
        )
    return root


def iter_files(root: Path) -> Iterator[tuple[tuple[str, ...], Path]]:
    """Yield (relative path parts, absolute path) for every file under root.

    Skips any path component named ``.git``.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d != VCS_DIRECTORY)
        base = Path(dirpath)
        rel_parts = base.relative_to(root).parts
        for name in sorted(filenames):
            if name == VCS_DIRECTORY:
                continue
            path = base / name
            if not path.is_file():
                logger.debug(f"Skipping non-regular file {path}")
                continue
            yield (*rel_parts, name), path


def build_bundle(
    root: Path,
    content: ContentTable,
    cancel_token: CancellationToken | None = None,
) -> Bundle:
    """Hash every file under root and assemble the bundle tree.

    Args:
        root: Directory to publish.
        content: Table receiving hash -> bytes for every file.
        cancel_token: Optional token checked between files.

    Returns:
        The built Bundle.

    Raises:
        BundleError: If root is not a directory or a file cannot be read.
        LaunchCancelled: If the token is set while walking.
    """
    root = Path(root)
    if not root.is_dir():
        raise BundleError(f"Bundle root {root} is not a directory")

    children: dict[str, Any] = {}
    file_count = 0

    for parts, path in iter_files(root):
        if cancel_token:
            cancel_token.raise_if_cancelled()
        try:
            data = path.read_bytes()
        except OSError as e:
            raise BundleError(f"Failed to read {path}: {e}") from e

        digest = content.add(data)
        current = children
        for part in parts[:-1]:
            node = current.setdefault(part, {NODE_CHILDREN: {}})
            current = node[NODE_CHILDREN]
        current[parts[-1]] = {NODE_HASH: digest}
        file_count += 1

    node = {NODE_CHILDREN: children}
    encoded = encode_node(node)
    logger.info(f"Bundled {file_count} files ({len(content)} unique) from {root}")
    return Bundle(root=node, encoded=encoded, hash=hash_bytes(encoded), file_count=file_count)
