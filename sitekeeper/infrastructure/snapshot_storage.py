from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from sitekeeper.domain.entities import Snapshot
from sitekeeper.domain.interfaces import ISnapshotStorage

log = logging.getLogger(__name__)


class SnapshotWriteError(Exception):
    """Raised when the snapshot could not be put in place."""
    pass


class JsonSnapshotStorage(ISnapshotStorage):
    """
    Stores the snapshot as pretty-printed JSON at a fixed path.

    Readers (the file server, the browser) may open the file at any moment,
    so the new content goes to a temp file in the same directory and is
    renamed over the old one. A reader sees the old file or the new one,
    never half of either.
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, snapshot: Snapshot) -> Path:
        body = json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False) + "\n"
        parent = self._path.parent

        try:
            parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=parent)
        except OSError as exc:
            raise SnapshotWriteError(f"Cannot prepare {self._path}: {exc}") from exc

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(body)
                handle.flush()
                os.fsync(handle.fileno())
            # mkstemp creates 0600; the site is meant to be readable
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self._path)
        except BaseException as exc:
            # leave the previous snapshot alone and drop the partial one
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            if isinstance(exc, OSError):
                raise SnapshotWriteError(f"Cannot write {self._path}: {exc}") from exc
            raise

        log.debug("Wrote %d bytes to %s", len(body), self._path)
        return self._path
