from __future__ import annotations
from dataclasses import asdict, dataclass, field


SNAPSHOT_SOURCE = "github-api-v3"


@dataclass(frozen=True)
class Profile:
    """
    Immutable snapshot of a GitHub user.

    Only the fields the site renders are kept. Optional values the API
    leaves empty stay None; filling in placeholder text is the browser's job.
    """
    login:        str
    name:         str | None
    bio:          str | None
    avatar_url:   str | None
    html_url:     str | None
    public_repos: int
    followers:    int
    following:    int
    created_at:   str | None
    updated_at:   str | None


@dataclass(frozen=True)
class Repository:
    """Immutable subset of a GitHub repository listing entry."""
    name:             str
    html_url:         str | None
    description:      str | None
    language:         str | None
    stargazers_count: int
    forks_count:      int
    fork:             bool
    pushed_at:        str | None
    updated_at:       str | None


@dataclass(frozen=True)
class Snapshot:
    """
    The persisted artifact consumed by the site.

    The on-disk keys (meta / user / repos) are what the browser code reads,
    so to_dict() must keep them stable.
    """
    username:     str
    fetched_at:   str
    profile:      Profile
    repositories: tuple[Repository, ...]
    source:       str = SNAPSHOT_SOURCE

    def to_dict(self) -> dict:
        return {
            "meta": {
                "username":   self.username,
                "fetched_at": self.fetched_at,
                "source":     self.source,
            },
            "user":  asdict(self.profile),
            "repos": [asdict(repo) for repo in self.repositories],
        }


@dataclass(frozen=True)
class ChildTaskResult:
    """What a finished child process left behind."""
    returncode:   int
    stdout:       str
    stderr:       str
    elapsed_secs: float


@dataclass(frozen=True)
class SyncOutcome:
    """
    Immutable value object summarising one sync attempt.
    Returned by the coordinator when the attempt finishes.
    """
    trigger:      str
    ok:           bool
    elapsed_secs: float
    detail:       str = field(default="")
