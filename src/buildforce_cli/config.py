"""Read and write the project record at ``.buildforce/buildforce.json``.

Shell helpers read this file with line patterns, so it is always written as
indented JSON with one key per line. Updating a key keeps its position; new
keys are appended.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from .constants import BUILDFORCE_DIR, CONFIG_FILENAME

logger = logging.getLogger(__name__)


@dataclass
class ProjectConfig:
    selected_assistants: list[str] = field(default_factory=list)
    script_flavor: str | None = None
    template_version: str | None = None
    current_session: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "ProjectConfig":
        return cls(
            selected_assistants=list(data.get("selectedAssistants") or []),
            script_flavor=data.get("scriptFlavor"),
            template_version=data.get("templateVersion"),
            current_session=data.get("currentSession"),
        )

    def to_dict(self) -> dict:
        return {
            "selectedAssistants": list(self.selected_assistants),
            "scriptFlavor": self.script_flavor,
            "templateVersion": self.template_version,
            "currentSession": self.current_session,
        }


def config_path(project_path: Path) -> Path:
    return Path(project_path) / BUILDFORCE_DIR / CONFIG_FILENAME


def atomic_write_text(path: Path, content: str) -> None:
    """Write ``content`` to ``path`` via a sibling temp file and ``os.replace``.

    Readers see either the old or the new file, never a partial one. The temp
    file lives in the same directory so the rename stays on one filesystem.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def read_config_data(project_path: Path) -> dict | None:
    """Return the raw record, or None when the file is missing or not a JSON object."""
    path = config_path(project_path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        logger.warning("Ignoring unreadable %s: %s", path, e)
        return None
    return data if isinstance(data, dict) else None


def read_config(project_path: Path) -> ProjectConfig | None:
    data = read_config_data(project_path)
    return ProjectConfig.from_dict(data) if data is not None else None


def save_config(project_path: Path, updates: dict) -> dict:
    """Apply ``updates`` (camelCase keys) to the record and rewrite it atomically."""
    data = read_config_data(project_path) or {}
    for key, value in updates.items():
        data[key] = value
    atomic_write_text(config_path(project_path), json.dumps(data, indent=2) + "\n")
    return data


def write_project_config(project_path: Path, config: ProjectConfig) -> dict:
    return save_config(project_path, config.to_dict())
