"""Shared fixtures: template archives built on the fly in tmp_path."""

import zipfile
from pathlib import Path

import pytest

TEMPLATE_FILES = {
    ".buildforce/scripts/bash/common.sh": "#!/usr/bin/env bash\necho common\n",
    ".buildforce/templates/spec-template.yaml": "id: {{ID}}\n",
    ".claude/commands/buildforce.plan.md": "# plan\n",
}


def write_zip(path: Path, files: dict, wrapper: str | None = None) -> Path:
    """Write ``files`` (relative name -> text) into a zip, optionally under one wrapping folder."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, content in files.items():
            arcname = f"{wrapper}/{name}" if wrapper else name
            zf.writestr(arcname, content)
    return path


@pytest.fixture
def make_zip():
    return write_zip


@pytest.fixture
def artifacts_dir(tmp_path):
    """A local artifacts directory holding a claude/sh template at v0.1.0."""
    directory = tmp_path / "genreleases"
    write_zip(directory / "buildforce-cli-template-claude-sh-v0.1.0.zip", TEMPLATE_FILES)
    return directory


@pytest.fixture
def template_zip_bytes(tmp_path):
    """Raw bytes of a claude/sh template archive, as a release download returns them."""
    return write_zip(tmp_path / "served" / "template.zip", TEMPLATE_FILES).read_bytes()
