"""Select which template archive to acquire for an agent and script type.

Two sources are supported:

* a local artifacts directory (``--local``), searched for files named
  ``<prefix>-<agent>-<script>-v<semver>.zip``;
* the GitHub release index, where the latest published release is used.
"""

import logging
import re
from pathlib import Path

import httpx

from .constants import TEMPLATE_PREFIX
from .errors import ResolutionError
from .github import asset_pattern, build_client, fetch_release_index, select_asset, select_latest_release
from .models import LocalRelease, ReleaseReference, RemoteRelease

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(rf"^{re.escape(TEMPLATE_PREFIX)}-.*-(v\d+\.\d+\.\d+)\.zip$")


def _generate_hint(ai_assistant: str, script_type: str) -> str:
    return (
        "To generate the required artifact, run:\n"
        f"AGENTS={ai_assistant} SCRIPTS={script_type} "
        ".github/workflows/scripts/create-release-packages.sh v0.0.99"
    )


def resolve_local_artifact(local_dir: Path, ai_assistant: str, script_type: str) -> LocalRelease:
    """Find the newest local artifact for the agent/script pair.

    Versions are compared as strings, which orders ``vX.Y.Z`` correctly only
    while every compared segment has the same number of digits.

    Raises:
        ResolutionError: when the directory is missing, nothing matches, the
            chosen file is empty, or its name carries no version.
    """
    local_dir = Path(local_dir).resolve()
    if not local_dir.is_dir():
        raise ResolutionError(
            f"Local artifacts directory not found: {local_dir}\n\n"
            "Please create the directory or run the artifact generation script.\n"
            + _generate_hint(ai_assistant, script_type)
        )

    pattern = f"{asset_pattern(ai_assistant, script_type)}-v*.zip"
    matches = sorted(local_dir.glob(pattern), key=lambda p: p.name, reverse=True)

    if not matches:
        siblings = sorted(p.name for p in local_dir.glob(f"{TEMPLATE_PREFIX}-*.zip"))
        if siblings:
            available = f"Available artifacts in {local_dir}:\n" + "\n".join(f"  - {name}" for name in siblings)
        else:
            available = f"No artifacts found in {local_dir}. The directory is empty."
        raise ResolutionError(
            "Local artifact not found.\n\n"
            f"Expected pattern: {pattern}\n"
            f"Searched in: {local_dir}\n\n{available}\n\n"
            + _generate_hint(ai_assistant, script_type)
        )

    selected = matches[0]
    if selected.stat().st_size == 0:
        raise ResolutionError(
            f"Local artifact is empty: {selected}\n\n"
            "Please regenerate the artifact using create-release-packages.sh"
        )

    version_match = _VERSION_RE.match(selected.name)
    if not version_match:
        raise ResolutionError(
            f"Invalid artifact filename format: {selected.name}\n\n"
            f"Expected format: {TEMPLATE_PREFIX}-{{agent}}-{{script}}-{{version}}.zip"
        )

    if len(matches) > 1:
        logger.warning("Found %d matching artifacts. Using latest: %s", len(matches), selected.name)

    return LocalRelease(path=selected, version=version_match.group(1))


def resolve_remote_release(
    ai_assistant: str,
    script_type: str,
    *,
    client: httpx.Client,
    github_token: str | None = None,
    debug: bool = False,
) -> RemoteRelease:
    releases = fetch_release_index(client, github_token=github_token, debug=debug)
    release = select_latest_release(releases)
    asset = select_asset(release, ai_assistant, script_type)
    logger.debug("Selected asset %s from release %s", asset["name"], release.get("tag_name"))

    # The API url (not browser_download_url) also works for private repositories
    return RemoteRelease(
        download_url=asset["url"],
        asset_name=asset["name"],
        size_bytes=int(asset.get("size", 0)),
        release_tag=release.get("tag_name", "unknown"),
    )


def resolve_release(
    ai_assistant: str,
    script_type: str,
    local_dir: Path | None = None,
    *,
    client: httpx.Client | None = None,
    github_token: str | None = None,
    debug: bool = False,
) -> ReleaseReference:
    """Return a reference to the archive to install for one agent.

    Without ``client`` a short-lived one is built and closed before returning.
    """
    if local_dir is not None:
        return resolve_local_artifact(Path(local_dir), ai_assistant, script_type)
    if client is None:
        with build_client() as owned_client:
            return resolve_remote_release(ai_assistant, script_type, client=owned_client, github_token=github_token, debug=debug)
    return resolve_remote_release(ai_assistant, script_type, client=client, github_token=github_token, debug=debug)


def reference_version(ref: ReleaseReference) -> str:
    """Version string recorded for ``ref``: the file version or the release tag."""
    return ref.version if isinstance(ref, LocalRelease) else ref.release_tag
