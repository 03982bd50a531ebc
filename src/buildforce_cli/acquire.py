"""Acquire templates for several agents into one project directory."""

import logging
from pathlib import Path

import httpx
from rich.console import Console

from .errors import AcquisitionError, BuildforceError
from .extract import materialize_archive
from .fetcher import fetch_archive
from .models import AcquisitionResult, AgentOutcome
from .resolver import reference_version, resolve_release
from .tracker import StepTracker

logger = logging.getLogger(__name__)


def agent_step_keys(agent_id: str) -> tuple[str, str]:
    return f"fetch-{agent_id}", f"extract-{agent_id}"


def add_agent_steps(tracker: StepTracker, agent_ids: list[str]) -> None:
    for agent_id in agent_ids:
        fetch_key, extract_key = agent_step_keys(agent_id)
        tracker.add(fetch_key, f"Fetch template ({agent_id})")
        tracker.add(extract_key, f"Extract template ({agent_id})")


def acquire_templates(
    project_path: Path,
    agent_ids: list[str],
    script_type: str,
    is_existing_directory: bool = False,
    *,
    tracker: StepTracker | None = None,
    client: httpx.Client | None = None,
    github_token: str | None = None,
    local_dir: Path | None = None,
    download_dir: Path | None = None,
    console: Console | None = None,
    debug: bool = False,
) -> AcquisitionResult:
    """Resolve, fetch and materialize one template per agent, in order.

    Agents run one after another because they all merge into the same
    directory. A failing agent is recorded and the loop continues; only a run
    where every agent failed raises. Given a ``console`` but no ``tracker``,
    remote downloads show a progress bar on that console instead.

    Returns:
        AcquisitionResult with one outcome per agent in input order and the
        version of the last successful agent.

    Raises:
        AcquisitionError: no agent succeeded.
    """
    project_path = Path(project_path)
    download_dir = Path(download_dir) if download_dir is not None else Path.cwd()
    if tracker:
        add_agent_steps(tracker, agent_ids)

    outcomes: list[AgentOutcome] = []
    resolved_version = None
    destination_exists = is_existing_directory

    for agent_id in agent_ids:
        fetch_key, extract_key = agent_step_keys(agent_id)
        stage_key = fetch_key
        try:
            if tracker:
                tracker.start(fetch_key, "local artifacts" if local_dir else "contacting GitHub API")
            ref = resolve_release(
                agent_id,
                script_type,
                local_dir,
                client=client,
                github_token=github_token,
                debug=debug,
            )
            archive = fetch_archive(
                ref,
                download_dir,
                client=client,
                github_token=github_token,
                show_progress=tracker is None and console is not None,
                console=console,
                debug=debug,
            )
            version = reference_version(ref)
            if tracker:
                tracker.complete(fetch_key, f"{archive.source_description} {version} ({archive.size_bytes:,} bytes)")

            stage_key = extract_key
            if tracker:
                tracker.start(extract_key)
            result = materialize_archive(archive, project_path, destination_exists)
            if tracker:
                tracker.complete(extract_key, f"{result.copied_entry_count} files")
        except (BuildforceError, OSError, httpx.HTTPError) as e:
            logger.debug("Template acquisition failed for %s", agent_id, exc_info=True)
            if tracker:
                tracker.error(stage_key, str(e).splitlines()[0] if str(e) else type(e).__name__)
                if stage_key == fetch_key:
                    tracker.skip(extract_key, "not fetched")
            outcomes.append(AgentOutcome(agent_id=agent_id, succeeded=False, error_message=str(e) or type(e).__name__))
            continue

        # Later agents merge into what this one created; their failures must not remove it
        destination_exists = True
        resolved_version = version
        outcomes.append(AgentOutcome(agent_id=agent_id, succeeded=True, resolved_version=version))

    result = AcquisitionResult(resolved_version=resolved_version, outcomes=outcomes)
    if not result.succeeded_agents:
        raise AcquisitionError(outcomes)

    for outcome in result.failed:
        logger.warning("Template for %s could not be installed: %s", outcome.agent_id, outcome.error_message)

    return result
