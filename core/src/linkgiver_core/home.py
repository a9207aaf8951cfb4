from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class LinkGiverPaths:
    home: Path
    data_dir: Path
    logs_dir: Path
    config_dir: Path

    @property
    def core_config_path(self) -> Path:
        return self.config_dir / "core.json"


def resolve_linkgiver_home(environ: dict[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ

    raw = (env.get("LINKGIVER_HOME") or "").strip()
    if raw:
        candidate = Path(raw).expanduser()
        # Never interpret LINKGIVER_HOME relative to CWD.
        if not candidate.is_absolute():
            candidate = (Path.home() / candidate).resolve()
        else:
            candidate = candidate.resolve()
        return candidate

    def default_home() -> Path:
        if sys.platform.startswith("win"):
            base = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
            if base:
                return Path(base) / "LinkGiver"
            return Path.home() / "AppData" / "Local" / "LinkGiver"

        if sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / "LinkGiver"

        xdg = os.environ.get("XDG_DATA_HOME")
        if xdg:
            return Path(xdg) / "linkgiver"
        return Path.home() / ".local" / "share" / "linkgiver"

    return default_home().resolve()


def ensure_linkgiver_layout(home: Path) -> LinkGiverPaths:
    home.mkdir(parents=True, exist_ok=True)

    data_dir = home / "data"
    logs_dir = home / "logs"
    config_dir = home / "config"

    for path in (data_dir, logs_dir, config_dir):
        path.mkdir(parents=True, exist_ok=True)

    return LinkGiverPaths(
        home=home,
        data_dir=data_dir,
        logs_dir=logs_dir,
        config_dir=config_dir,
    )
