"""GitHub release index access shared by the resolver, fetcher and CLI."""

import logging
import os
import ssl
from datetime import datetime, timezone

import httpx
import truststore

from .constants import REPO_NAME, REPO_OWNER, TEMPLATE_PREFIX
from .errors import ResolutionError

logger = logging.getLogger(__name__)

ssl_context = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)

RELEASES_URL = f"https://api.github.com/repos/{REPO_OWNER}/{REPO_NAME}/releases"
API_TIMEOUT = 30
DOWNLOAD_TIMEOUT = 60


def build_client(skip_tls: bool = False) -> httpx.Client:
    """Return an HTTP client using the system trust store (or no verification)."""
    return httpx.Client(verify=False if skip_tls else ssl_context)


def _github_token(cli_token: str | None = None) -> str | None:
    """Return sanitized GitHub token (cli arg takes precedence) or None."""
    return ((cli_token or os.getenv("GH_TOKEN") or os.getenv("GITHUB_TOKEN") or "").strip()) or None


def _github_auth_headers(cli_token: str | None = None) -> dict:
    """Return Authorization header dict only when a non-empty token exists."""
    token = _github_token(cli_token)
    return {"Authorization": f"Bearer {token}"} if token else {}


def github_api_headers(cli_token: str | None = None) -> dict:
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    headers.update(_github_auth_headers(cli_token))
    return headers


def _parse_rate_limit_headers(headers: httpx.Headers) -> dict:
    """Extract and parse GitHub rate-limit headers."""
    info = {}

    if "X-RateLimit-Limit" in headers:
        info["limit"] = headers.get("X-RateLimit-Limit")
    if "X-RateLimit-Remaining" in headers:
        info["remaining"] = headers.get("X-RateLimit-Remaining")
    if "X-RateLimit-Reset" in headers:
        reset_epoch = int(headers.get("X-RateLimit-Reset", "0"))
        if reset_epoch:
            reset_time = datetime.fromtimestamp(reset_epoch, tz=timezone.utc)
            info["reset_epoch"] = reset_epoch
            info["reset_time"] = reset_time
            info["reset_local"] = reset_time.astimezone()

    # Retry-After header (seconds or HTTP-date)
    if "Retry-After" in headers:
        retry_after = headers.get("Retry-After")
        try:
            info["retry_after_seconds"] = int(retry_after)
        except ValueError:
            info["retry_after"] = retry_after

    return info


def _format_rate_limit_error(status_code: int, headers: httpx.Headers, url: str) -> str:
    """Format a user-friendly error message with rate-limit information."""
    rate_info = _parse_rate_limit_headers(headers)

    lines = [f"GitHub API returned status {status_code} for {url}"]
    lines.append("")

    if rate_info:
        lines.append("[bold]Rate Limit Information:[/bold]")
        if "limit" in rate_info:
            lines.append(f"  • Rate Limit: {rate_info['limit']} requests/hour")
        if "remaining" in rate_info:
            lines.append(f"  • Remaining: {rate_info['remaining']}")
        if "reset_local" in rate_info:
            reset_str = rate_info["reset_local"].strftime("%Y-%m-%d %H:%M:%S %Z")
            lines.append(f"  • Resets at: {reset_str}")
        if "retry_after_seconds" in rate_info:
            lines.append(f"  • Retry after: {rate_info['retry_after_seconds']} seconds")
        lines.append("")

    lines.append("[bold]Troubleshooting Tips:[/bold]")
    lines.append("  • Private template repositories require a token with read access.")
    lines.append("  • Use --github-token or the GH_TOKEN/GITHUB_TOKEN environment variable")
    lines.append("    to authenticate and raise the rate limit.")
    lines.append("  • Authenticated requests have a limit of 5,000/hour vs 60/hour for unauthenticated.")

    return "\n".join(lines)


def fetch_release_index(client: httpx.Client, *, github_token: str | None = None, debug: bool = False) -> list[dict]:
    """Return the list of releases for the template repository, newest first."""
    logger.debug("Fetching release index from %s", RELEASES_URL)
    response = client.get(
        RELEASES_URL,
        timeout=API_TIMEOUT,
        follow_redirects=True,
        headers=github_api_headers(github_token),
    )
    if response.status_code != 200:
        error_msg = _format_rate_limit_error(response.status_code, response.headers, RELEASES_URL)
        if debug:
            error_msg += f"\n\n[dim]Response body (truncated 500):[/dim]\n{response.text[:500]}"
        raise ResolutionError(error_msg)
    try:
        releases = response.json()
    except ValueError as je:
        raise ResolutionError(f"Failed to parse release JSON: {je}\nRaw (truncated 400): {response.text[:400]}") from je
    if not isinstance(releases, list):
        raise ResolutionError(f"Unexpected release index payload from {RELEASES_URL}")
    return releases


def select_latest_release(releases: list[dict]) -> dict:
    """Pick the first published release (the index is ordered most recent first)."""
    for release in releases:
        if not release.get("draft") and not release.get("prerelease"):
            return release
    raise ResolutionError("No published releases found")


def asset_pattern(ai_assistant: str, script_type: str) -> str:
    return f"{TEMPLATE_PREFIX}-{ai_assistant}-{script_type}"


def select_asset(release: dict, ai_assistant: str, script_type: str) -> dict:
    assets = release.get("assets", [])
    pattern = asset_pattern(ai_assistant, script_type)
    matching_assets = [
        asset for asset in assets
        if pattern in asset.get("name", "") and asset["name"].endswith(".zip")
    ]
    if not matching_assets:
        asset_names = [a.get("name", "?") for a in assets]
        raise ResolutionError(
            f"No matching release asset found for {ai_assistant} "
            f"(expected pattern: {pattern}) in release {release.get('tag_name', '?')}\n"
            "Available assets:\n" + ("\n".join(f"  - {name}" for name in asset_names) or "  (no assets)")
        )
    return matching_assets[0]
