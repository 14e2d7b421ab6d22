"""
fetch_snapshot.py - the refresh task
------------------------------------
Short-lived command that reads one GitHub user and their repositories and
writes the snapshot the site renders. The service runs it as a child
process; it can also be run by hand:

    python -m sitekeeper.fetch_snapshot giarld data/github-data.json

The optional token comes from GH_TOKEN (or GITHUB_TOKEN), never from the
command line, so it does not show up in process listings.

Output contract: on success the summary goes to stdout and the exit code
is 0. On failure the reason goes to stderr and the exit code is 1, and the
previous snapshot file is left untouched.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import httpx

from sitekeeper.application.snapshot_service import SnapshotService
from sitekeeper.config import DEFAULT_OUTPUT, DEFAULT_USERNAME
from sitekeeper.domain.entities import Snapshot
from sitekeeper.infrastructure.github_client import FetchError, GitHubClient, token_from_env
from sitekeeper.infrastructure.snapshot_storage import JsonSnapshotStorage, SnapshotWriteError

log = logging.getLogger(__name__)


async def build_and_run(
    username: str,
    output: Path,
    token: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Snapshot:
    """Wire the client, storage and service together and run one refresh."""
    client = httpx.AsyncClient(transport=transport, follow_redirects=True)
    try:
        service = SnapshotService(
            fetcher = GitHubClient(client=client, token=token),
            storage = JsonSnapshotStorage(output),
        )
        return await service.refresh(username)
    finally:
        await client.aclose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="sitekeeper-fetch",
        description="Fetch a GitHub profile and its repositories into a JSON snapshot",
    )
    parser.add_argument("username", nargs="?", default=DEFAULT_USERNAME, help=f"GitHub login (default: {DEFAULT_USERNAME})")
    parser.add_argument("output", nargs="?", default=DEFAULT_OUTPUT, help=f"snapshot path (default: {DEFAULT_OUTPUT})")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    output = Path(args.output).resolve()

    try:
        snapshot = asyncio.run(build_and_run(args.username, output, token=token_from_env()))
    except (FetchError, SnapshotWriteError) as exc:
        log.error("%s", exc)
        return 1

    print(f"Updated {output}")
    print(f"User: {snapshot.profile.login} | repos: {len(snapshot.repositories)}")
    print(f"Fetched at: {snapshot.fetched_at}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
