"""
Domain Layer - Interfaces
-------------------------
Abstract contracts the application layer depends on. The infrastructure
layer provides the concrete classes; tests pass in fakes.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from .entities import ChildTaskResult, Profile, Repository, Snapshot


class IProfileFetcher(ABC):
    """Contract for anything that can read a user and their repositories."""

    @abstractmethod
    async def fetch_profile(self, username: str) -> Profile:
        ...

    @abstractmethod
    async def fetch_repositories(self, username: str) -> list[Repository]:
        """Every public repository, in the order the remote API lists them."""
        ...


class ISnapshotStorage(ABC):
    """Contract for persisting a snapshot. Writes must be all-or-nothing."""

    @abstractmethod
    def write(self, snapshot: Snapshot) -> Path:
        """Replace the stored snapshot. Returns the final path."""
        ...


class IChildTaskRunner(ABC):
    """Contract for running one external command with bounded lifetime."""

    @abstractmethod
    async def run(self, args: Sequence[str]) -> ChildTaskResult:
        ...
