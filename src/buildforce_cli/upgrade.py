"""Replace the template-managed folders of an existing project.

An upgrade touches only the agents' ``commands`` folders plus
``.buildforce/templates`` and ``.buildforce/scripts``; sessions, context and the
project record are left alone. Replaced folders are removed first, so command
files dropped from the template disappear too.

Every template is fetched and unpacked before anything in the project changes.
Each folder is then copied to a backup before it is replaced, and all backups
are restored if a later replacement fails.
"""

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

import httpx

from .acquire import agent_step_keys
from .constants import AGENT_CONFIG, BUILDFORCE_DIR, SCRIPTS_DIRNAME, TEMPLATES_DIRNAME
from .errors import MaterializationError
from .extract import unpack_archive
from .fetcher import fetch_archive
from .models import PlannedReplacement, UpgradeResult
from .resolver import reference_version, resolve_release
from .tracker import StepTracker

logger = logging.getLogger(__name__)

SHARED_MANAGED_DIRS = (
    f"{BUILDFORCE_DIR}/{TEMPLATES_DIRNAME}",
    f"{BUILDFORCE_DIR}/{SCRIPTS_DIRNAME}",
)


@dataclass(frozen=True)
class StagedTemplate:
    agent_id: str
    version: str
    source_dir: Path


def agent_commands_dir(agent_id: str) -> str:
    return f"{AGENT_CONFIG[agent_id]['folder'].rstrip('/')}/commands"


def stage_templates(
    agent_ids: list[str],
    script_type: str,
    scratch_dir: Path,
    *,
    tracker: StepTracker | None = None,
    client: httpx.Client | None = None,
    github_token: str | None = None,
    local_dir: Path | None = None,
    download_dir: Path | None = None,
    debug: bool = False,
) -> list[StagedTemplate]:
    """Fetch and unpack every agent's template under ``scratch_dir``.

    Unlike ``acquire_templates`` a single failing agent aborts the whole run.
    """
    download_dir = Path(download_dir) if download_dir is not None else Path.cwd()
    staged = []
    for agent_id in agent_ids:
        fetch_key, extract_key = agent_step_keys(agent_id)
        stage_key = fetch_key
        try:
            if tracker:
                tracker.start(fetch_key, "local artifacts" if local_dir else "contacting GitHub API")
            ref = resolve_release(agent_id, script_type, local_dir, client=client, github_token=github_token, debug=debug)
            archive = fetch_archive(ref, download_dir, client=client, github_token=github_token, debug=debug)
            version = reference_version(ref)
            if tracker:
                tracker.complete(fetch_key, f"{archive.source_description} {version} ({archive.size_bytes:,} bytes)")

            stage_key = extract_key
            if tracker:
                tracker.start(extract_key, "temporary location")
            source_dir = unpack_archive(archive, scratch_dir / agent_id)
            if tracker:
                tracker.complete(extract_key, "staged")
        except Exception as e:
            if tracker:
                tracker.error(stage_key, str(e).splitlines()[0] if str(e) else type(e).__name__)
                if stage_key == fetch_key:
                    tracker.skip(extract_key, "not fetched")
            raise
        staged.append(StagedTemplate(agent_id=agent_id, version=version, source_dir=source_dir))
    return staged


def _replacement_sources(staged: list[StagedTemplate]) -> list[tuple[str, Path | None]]:
    sources = []
    for template in staged:
        relative = agent_commands_dir(template.agent_id)
        source = template.source_dir / relative
        sources.append((relative, source if source.is_dir() else None))
    for relative in SHARED_MANAGED_DIRS:
        source = None
        # Templates ship identical shared folders; the last agent's copy wins
        for template in staged:
            candidate = template.source_dir / relative
            if candidate.is_dir():
                source = candidate
        sources.append((relative, source))
    return sources


def plan_replacements(project_path: Path, staged: list[StagedTemplate]) -> list[PlannedReplacement]:
    plan = []
    for relative, source in _replacement_sources(staged):
        if source is None:
            action = "skip"
        elif (Path(project_path) / relative).exists():
            action = "update"
        else:
            action = "create"
        plan.append(PlannedReplacement(relative_path=relative, action=action))
    return plan


def _restore(backed_up: list[tuple[Path, Path | None]]) -> None:
    for dest, backup in reversed(backed_up):
        if dest.exists():
            shutil.rmtree(dest)
        if backup is not None:
            shutil.copytree(backup, dest)


def apply_replacements(project_path: Path, staged: list[StagedTemplate], backup_dir: Path) -> list[PlannedReplacement]:
    """Swap each managed folder for the staged copy, restoring everything on failure.

    Raises:
        MaterializationError: a replacement failed; the previous folders are back.
    """
    project_path = Path(project_path)
    plan = plan_replacements(project_path, staged)
    sources = dict(_replacement_sources(staged))
    backed_up: list[tuple[Path, Path | None]] = []

    try:
        for item in plan:
            if item.action == "skip":
                continue
            dest = project_path / item.relative_path
            backup = None
            if dest.exists():
                backup = backup_dir / item.relative_path
                shutil.copytree(dest, backup)
            backed_up.append((dest, backup))
            if dest.exists():
                shutil.rmtree(dest)
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(sources[item.relative_path], dest)
            logger.debug("Replaced %s", item.relative_path)
    except OSError as e:
        logger.warning("Upgrade failed, restoring %d folders from backup", len(backed_up))
        _restore(backed_up)
        raise MaterializationError(f"Could not replace {item.relative_path}: {e}. Previous files were restored.") from e

    return plan


def upgrade_project(
    project_path: Path,
    agent_ids: list[str],
    script_type: str,
    *,
    dry_run: bool = False,
    tracker: StepTracker | None = None,
    client: httpx.Client | None = None,
    github_token: str | None = None,
    local_dir: Path | None = None,
    download_dir: Path | None = None,
    debug: bool = False,
) -> UpgradeResult:
    """Re-apply the latest templates to the managed folders of ``project_path``.

    With ``dry_run`` the templates are still fetched and inspected, but the
    project is left untouched and the returned plan says what would change.
    The scratch directory holding staged templates and backups is always
    removed.
    """
    project_path = Path(project_path)
    scratch_dir = Path(tempfile.mkdtemp(prefix="buildforce-upgrade-"))
    try:
        staged = stage_templates(
            agent_ids,
            script_type,
            scratch_dir / "staged",
            tracker=tracker,
            client=client,
            github_token=github_token,
            local_dir=local_dir,
            download_dir=download_dir,
            debug=debug,
        )
        version = staged[-1].version if staged else None

        if tracker:
            tracker.start("replace")
        if dry_run:
            plan = plan_replacements(project_path, staged)
            if tracker:
                tracker.skip("replace", f"dry run: {sum(1 for p in plan if p.action != 'skip')} folders would change")
        else:
            try:
                plan = apply_replacements(project_path, staged, scratch_dir / "backup")
            except MaterializationError:
                if tracker:
                    tracker.error("replace", "restored from backup")
                raise
            if tracker:
                tracker.complete("replace", f"{sum(1 for p in plan if p.action != 'skip')} folders")
        return UpgradeResult(resolved_version=version, replacements=plan, dry_run=dry_run)
    finally:
        shutil.rmtree(scratch_dir, ignore_errors=True)
