from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class PortalPaths:
    home: Path
    config_dir: Path
    logs_dir: Path
    state_dir: Path

    @property
    def portal_config_path(self) -> Path:
        return self.config_dir / "portal.json"

    @property
    def storage_path(self) -> Path:
        return self.state_dir / "storage.json"

    @property
    def cookies_path(self) -> Path:
        return self.state_dir / "cookies.json"


def anchor_home(raw: str) -> Path:
    """Resolve a user-supplied home path; relative values sit under ``~``, not CWD."""

    candidate = Path(raw.strip()).expanduser()
    if not candidate.is_absolute():
        candidate = Path.home() / candidate
    return candidate.resolve()


def resolve_portal_home(environ: Mapping[str, str] | None = None) -> Path:
    """``AURALIS_HOME`` if set, else ``$XDG_STATE_HOME/auralis``, else ``~/.auralis``."""

    env = os.environ if environ is None else environ

    raw = (env.get("AURALIS_HOME") or "").strip()
    if raw:
        return anchor_home(raw)

    xdg = (env.get("XDG_STATE_HOME") or "").strip()
    if xdg:
        return (Path(xdg).expanduser() / "auralis").resolve()
    return (Path.home() / ".auralis").resolve()


def ensure_portal_layout(home: Path) -> PortalPaths:
    home.mkdir(parents=True, exist_ok=True)

    config_dir = home / "config"
    logs_dir = home / "logs"
    state_dir = home / "state"

    for path in (config_dir, logs_dir, state_dir):
        path.mkdir(parents=True, exist_ok=True)

    return PortalPaths(
        home=home,
        config_dir=config_dir,
        logs_dir=logs_dir,
        state_dir=state_dir,
    )
