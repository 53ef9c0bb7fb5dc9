import os
import sys
from pathlib import Path
from dataclasses import dataclass

APP_NAME = "JiraStopWatch"

# Lil helper function to create a directory (and its parents) if it's missing.
def ensure_directory(path: Path):
    path.mkdir(parents=True,exist_ok=True)
    return path

# Picks the per-user folder everything lives under. JSW_DATA_DIR wins, so tests and portable installs can point
# somewhere else.
def _data_root():
    override = os.getenv("JSW_DATA_DIR")
    if override:
        return Path(override)
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        if not appdata:
            raise RuntimeError("Missing APPDATA environment variable, cannot determine data directories.")
        return Path(appdata) / APP_NAME
    base = os.getenv("XDG_CONFIG_HOME") or (Path.home() / ".config")
    return Path(base) / APP_NAME

# Dataclass for accessing paths across program. Built once and handed to whatever needs a location, nothing
# else reads the environment.
@dataclass(frozen=False)
class ProjectPaths:

    data: Path

    logs: Path
    current: Path
    keys: Path

    @property
    def settings_file(self):
        return self.current / "settings.json"

    @property
    def salt_file(self):
        return self.keys / "vault.salt"

    @staticmethod
    def build(root: Path | None = None):
        # Folder for all user-specific stuff
        data = ensure_directory(root or _data_root())

        # Folders within the data folder
        logs = ensure_directory(data / "logs")
        current = ensure_directory(data / "current")
        keys = ensure_directory(data / "keys")

        return ProjectPaths(
            data = data,
            logs = logs,
            current = current,
            keys = keys,
        )
PATHS = ProjectPaths.build()
