from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from sitekeeper.domain.entities import Snapshot
from sitekeeper.domain.interfaces import IProfileFetcher, ISnapshotStorage

log = logging.getLogger(__name__)


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC with millisecond precision and a trailing Z, e.g. 2024-05-01T09:30:00.123Z."""
    now = now or datetime.now(tz=timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class SnapshotService:
    """
    The refresh use case: read the profile and every repository, then
    replace the stored snapshot.

    Receives its fetcher and storage via constructor injection. Nothing is
    written until every remote call has succeeded, so a failure halfway
    through the listing leaves the previous snapshot as it was.
    """

    def __init__(
        self,
        fetcher: IProfileFetcher,
        storage: ISnapshotStorage,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._fetcher = fetcher
        self._storage = storage
        self._clock   = clock

    async def refresh(self, username: str) -> Snapshot:
        log.info("Refreshing snapshot for %s", username)

        profile = await self._fetcher.fetch_profile(username)
        repos   = await self._fetcher.fetch_repositories(username)

        snapshot = Snapshot(
            username     = username,
            fetched_at   = self._clock(),
            profile      = profile,
            repositories = tuple(repos),
        )
        path = self._storage.write(snapshot)

        log.info("Snapshot written | %s | %d repos", path, len(snapshot.repositories))
        return snapshot
