import logging
import os
from pathlib import Path

from .constants import BUILDFORCE_DIR, SCRIPTS_DIRNAME
from .tracker import StepTracker

logger = logging.getLogger(__name__)


def ensure_executable_scripts(project_path: Path, tracker: StepTracker | None = None) -> tuple[int, list[str]]:
    """Ensure POSIX .sh scripts under .buildforce/scripts (recursively) have execute bits (no-op on Windows).

    Returns:
        Tuple of (number of scripts updated, list of failure descriptions)
    """
    if os.name == "nt":
        return 0, []  # Windows: skip silently
    scripts_root = Path(project_path) / BUILDFORCE_DIR / SCRIPTS_DIRNAME
    if not scripts_root.is_dir():
        if tracker:
            tracker.skip("chmod", "no scripts")
        return 0, []
    failures: list[str] = []
    updated = 0
    for script in scripts_root.rglob("*.sh"):
        try:
            if script.is_symlink() or not script.is_file():
                continue
            with script.open("rb") as f:
                if f.read(2) != b"#!":
                    continue
            mode = script.stat().st_mode
            if mode & 0o111:
                continue
            new_mode = mode
            if mode & 0o400:
                new_mode |= 0o100
            if mode & 0o040:
                new_mode |= 0o010
            if mode & 0o004:
                new_mode |= 0o001
            if not (new_mode & 0o100):
                new_mode |= 0o100
            os.chmod(script, new_mode)
            updated += 1
        except OSError as e:
            failures.append(f"{script.relative_to(scripts_root)}: {e}")
    for failure in failures:
        logger.warning("Could not update script permissions: %s", failure)
    if tracker:
        detail = f"{updated} updated" + (f", {len(failures)} failed" if failures else "")
        (tracker.error if failures else tracker.complete)("chmod", detail)
    return updated, failures
