"""
Service configuration.

resolve_config() is a pure function of (argv, environment): a flag beats
an environment variable, which beats the built-in default. Bad numbers and
booleans are logged and replaced by the default instead of aborting.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Sequence

log = logging.getLogger(__name__)

DEFAULT_HOST           = "0.0.0.0"
DEFAULT_PORT           = 8080
DEFAULT_USERNAME       = "giarld"
DEFAULT_OUTPUT         = "data/github-data.json"
DEFAULT_INTERVAL_MINS  = 30.0
DEFAULT_TIMEOUT_SECS   = 120.0
DEFAULT_LOG_LEVEL      = "INFO"

TRUE_VALUES  = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ServiceConfig:
    host:                  str   = DEFAULT_HOST
    port:                  int   = DEFAULT_PORT
    root:                  Path  = Path(".")
    sync_enabled:          bool  = True
    sync_username:         str   = DEFAULT_USERNAME
    sync_output:           str   = DEFAULT_OUTPUT
    sync_interval_minutes: float = DEFAULT_INTERVAL_MINS
    sync_timeout_seconds:  float = DEFAULT_TIMEOUT_SECS
    log_level:             str   = DEFAULT_LOG_LEVEL

    @property
    def sync_interval_seconds(self) -> float:
        return self.sync_interval_minutes * 60.0

    @property
    def snapshot_path(self) -> Path:
        """Absolute snapshot location; relative outputs live under the serving root."""
        return (self.root / self.sync_output).resolve()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitekeeper",
        description="Serve the site locally and keep its GitHub snapshot fresh",
    )
    # Everything is read as a string and validated below, so a bad value
    # falls back to the default instead of making argparse exit.
    parser.add_argument("--host", help=f"listen address (env HOST, default {DEFAULT_HOST})")
    parser.add_argument("--port", help=f"listen port (env PORT, default {DEFAULT_PORT})")
    parser.add_argument("--root", help="directory to serve (env SITE_ROOT, default: current directory)")
    parser.add_argument(
        "--sync", dest="sync", action="store_const", const="true",
        help="enable background snapshot refresh (env SYNC_ENABLED, default on)",
    )
    parser.add_argument("--no-sync", dest="sync", action="store_const", const="false", help="disable snapshot refresh")
    parser.add_argument("--sync-user", help=f"GitHub login to fetch (env SYNC_USERNAME, default {DEFAULT_USERNAME})")
    parser.add_argument("--sync-output", help=f"snapshot path relative to the root (env SYNC_OUTPUT, default {DEFAULT_OUTPUT})")
    parser.add_argument("--sync-interval", help=f"minutes between refreshes (env SYNC_INTERVAL_MINUTES, default {DEFAULT_INTERVAL_MINS:g})")
    parser.add_argument("--sync-timeout", help=f"seconds before a refresh is killed (env SYNC_TIMEOUT_SECONDS, default {DEFAULT_TIMEOUT_SECS:g})")
    parser.add_argument("--log-level", help=f"logging level (env LOG_LEVEL, default {DEFAULT_LOG_LEVEL})")
    return parser


def _pick(flag: str | None, environ: Mapping[str, str], name: str) -> str | None:
    if flag is not None and flag.strip() != "":
        return flag.strip()
    value = environ.get(name)
    if value is not None and value.strip() != "":
        return value.strip()
    return None


def _parse_port(raw: str | None) -> int:
    if raw is None:
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError:
        port = -1
    if not 1 <= port <= 65535:
        log.warning("Invalid port %r, using %d", raw, DEFAULT_PORT)
        return DEFAULT_PORT
    return port


def _parse_positive(raw: str | None, default: float, label: str) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        value = 0.0
    if not value > 0 or value == float("inf"):
        log.warning("Invalid %s %r, using %g", label, raw, default)
        return default
    return value


def _parse_bool(raw: str | None, default: bool, label: str) -> bool:
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    log.warning("Invalid %s %r, using %s", label, raw, default)
    return default


def _parse_level(raw: str | None) -> str:
    if raw is None:
        return DEFAULT_LOG_LEVEL
    level = raw.upper()
    if not isinstance(logging.getLevelName(level), int):
        log.warning("Invalid log level %r, using %s", raw, DEFAULT_LOG_LEVEL)
        return DEFAULT_LOG_LEVEL
    return level


def resolve_config(argv: Sequence[str] | None, environ: Mapping[str, str]) -> ServiceConfig:
    args = build_parser().parse_args(argv)

    return ServiceConfig(
        host                  = _pick(args.host, environ, "HOST") or DEFAULT_HOST,
        port                  = _parse_port(_pick(args.port, environ, "PORT")),
        root                  = Path(_pick(args.root, environ, "SITE_ROOT") or ".").resolve(),
        sync_enabled          = _parse_bool(_pick(args.sync, environ, "SYNC_ENABLED"), True, "SYNC_ENABLED"),
        sync_username         = _pick(args.sync_user, environ, "SYNC_USERNAME") or DEFAULT_USERNAME,
        sync_output           = _pick(args.sync_output, environ, "SYNC_OUTPUT") or DEFAULT_OUTPUT,
        sync_interval_minutes = _parse_positive(
            _pick(args.sync_interval, environ, "SYNC_INTERVAL_MINUTES"), DEFAULT_INTERVAL_MINS, "sync interval"
        ),
        sync_timeout_seconds  = _parse_positive(
            _pick(args.sync_timeout, environ, "SYNC_TIMEOUT_SECONDS"), DEFAULT_TIMEOUT_SECS, "sync timeout"
        ),
        log_level             = _parse_level(_pick(args.log_level, environ, "LOG_LEVEL")),
    )
