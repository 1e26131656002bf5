"""Chunked upload of missing content.

Blobs the server lacks are packed largest-first into batches bounded by a
byte budget and sent one batch per request, sequentially.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from sitelaunch.core.config import CHUNK_BUDGET
from sitelaunch.publish.types import TeamAuthError

if TYPE_CHECKING:
    from sitelaunch.client.api import PublishClient
    from sitelaunch.core.cancel import CancellationToken
    from sitelaunch.publish.bundle import ContentTable

logger = logging.getLogger(__name__)

# Receives human-readable progress lines
LogCallback = Callable[[str], None]


def plan_chunks(blobs: list[bytes], budget: int = CHUNK_BUDGET) -> list[list[bytes]]:
    """Pack blobs into size-bounded batches, largest first.

    A batch is closed when the next blob would push it over budget. Blobs
    are never split, so a blob larger than budget gets a batch of its own.

    Args:
        blobs: Contents to pack.
        budget: Maximum batch size in bytes.

    Returns:
        Batches in upload order.
    """
    chunks: list[list[bytes]] = []
    current: list[bytes] = []
    current_size = 0

    for blob in sorted(blobs, key=len, reverse=True):
        if current and current_size + len(blob) > budget:
            chunks.append(current)
            current = []
            current_size = 0
        current.append(blob)
        current_size += len(blob)

    if current:
        chunks.append(current)
    return chunks


def collect_missing(missing: list[str], content: ContentTable) -> list[bytes]:
    """Resolve missing hashes to their bytes.

    Raises:
        MissingContentError: If a hash is absent from the table.
    """
    return [content.require(h) for h in missing]


def upload_missing_parts(
    client: PublishClient,
    domain: str,
    missing: list[str],
    content: ContentTable,
    team_id: str | None = None,
    budget: int = CHUNK_BUDGET,
    cancel_token: CancellationToken | None = None,
    log: LogCallback | None = None,
) -> int:
    """Upload every missing blob in size-bounded batches.

    Args:
        client: API client for the destination's service.
        domain: Destination domain.
        missing: Hex hashes reported missing by the server.
        content: Table built with the bundle.
        team_id: Optional team scope.
        budget: Maximum batch size in bytes.
        cancel_token: Checked before every batch.
        log: Optional progress line callback.

    Returns:
        Number of batches uploaded.

    Raises:
        MissingContentError: If a requested hash was never bundled.
        TeamAuthError: If the server demands a team scope mid-upload.
        LaunchCancelled: If the token is set.
        APIError: On the first failed batch.
    """
    emit = log or (lambda line: None)

    blobs = collect_missing(missing, content)
    if not blobs:
        emit("No missing parts to upload")
        return 0

    chunks = plan_chunks(blobs, budget)
    emit(f"Uploading {len(blobs)} parts in {len(chunks)} chunk(s)")

    for i, chunk in enumerate(chunks, start=1):
        if cancel_token:
            cancel_token.raise_if_cancelled("Upload cancelled")

        size = sum(len(b) for b in chunk)
        emit(f"Uploading chunk {i}/{len(chunks)} ({len(chunk)} parts, {size} bytes)")
        response = client.upload_missing(domain, chunk, team_id)

        if response.team_required:
            raise TeamAuthError(
                "Team ID required for upload. This should not happen if "
                "suggestion succeeded. Please report this issue."
            )
        for error in response.errors:
            emit(f"Error: {error}")
        for warning in response.warnings:
            emit(f"Warning: {warning}")
        for message in response.messages:
            emit(f"Info: {message}")

    logger.info(f"Uploaded {len(blobs)} missing parts to {domain} in {len(chunks)} chunk(s)")
    emit("All missing parts uploaded")
    return len(chunks)
