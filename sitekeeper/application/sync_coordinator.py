from __future__ import annotations

import logging
import sys
import time
from pathlib import Path

from sitekeeper.domain.entities import SyncOutcome
from sitekeeper.domain.interfaces import IChildTaskRunner
from sitekeeper.infrastructure.subprocess_runner import ChildTaskError

log = logging.getLogger(__name__)

FETCH_MODULE = "sitekeeper.fetch_snapshot"


def fetch_command(username: str, output: Path) -> list[str]:
    """Argv for the refresh task. The token travels via the environment, not here."""
    return [sys.executable, "-m", FETCH_MODULE, username, str(output)]


def _tail(text: str, limit: int = 2000) -> str:
    text = text.strip()
    return text if len(text) <= limit else "..." + text[-limit:]


class SyncCoordinator:
    """
    Decides whether a refresh may start and runs it as a child task.

    The in-progress flag belongs to this class alone. It is checked and set
    with no await in between, which makes request_sync() safe for any number
    of concurrent callers on one event loop: the first caller runs the task,
    everyone else returns immediately. Nothing is queued.
    """

    def __init__(
        self,
        runner: IChildTaskRunner,
        username: str,
        output: Path,
        enabled: bool = True,
    ) -> None:
        self._runner      = runner
        self._username    = username
        self._output      = Path(output)
        self._enabled     = enabled
        self._in_progress = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def request_sync(self, trigger: str) -> SyncOutcome | None:
        """
        Run one refresh unless disabled or one is already running.

        Returns the outcome of the attempt, or None when the call was skipped.
        A failed refresh is logged and reported, never raised.
        """
        if not self._enabled:
            log.info("[%s] sync disabled, skipping", trigger)
            return None

        if self._in_progress:
            log.info("[%s] sync already running, skipping", trigger)
            return None

        self._in_progress = True
        started = time.monotonic()
        log.info("[%s] sync started | user=%s | output=%s", trigger, self._username, self._output)

        try:
            try:
                result = await self._runner.run(fetch_command(self._username, self._output))
            except (ChildTaskError, OSError) as exc:
                outcome = SyncOutcome(trigger, False, time.monotonic() - started, str(exc))
            except Exception as exc:
                log.exception("[%s] sync raised unexpectedly", trigger)
                outcome = SyncOutcome(trigger, False, time.monotonic() - started, f"{type(exc).__name__}: {exc}")
            else:
                if result.returncode == 0:
                    outcome = SyncOutcome(trigger, True, time.monotonic() - started, _tail(result.stdout))
                else:
                    detail = _tail(result.stderr) or f"exit status {result.returncode}"
                    outcome = SyncOutcome(trigger, False, time.monotonic() - started, detail)
        finally:
            self._in_progress = False

        if outcome.ok:
            log.info("[%s] sync finished in %.1fs\n%s", trigger, outcome.elapsed_secs, outcome.detail)
        else:
            log.error("[%s] sync failed after %.1fs: %s", trigger, outcome.elapsed_secs, outcome.detail)
        return outcome
