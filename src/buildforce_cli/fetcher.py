import logging
from pathlib import Path

import httpx
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from .errors import TransferError
from .github import DOWNLOAD_TIMEOUT, _format_rate_limit_error, _github_auth_headers, build_client
from .models import FetchedArchive, LocalRelease, ReleaseReference

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192


def fetch_archive(
    ref: ReleaseReference,
    download_dir: Path,
    *,
    client: httpx.Client | None = None,
    github_token: str | None = None,
    show_progress: bool = False,
    console: Console | None = None,
    debug: bool = False,
) -> FetchedArchive:
    """Make the archive for ``ref`` available as a local file.

    Local references are used in place. Remote references are streamed into
    ``download_dir``; the caller owns the resulting file.
    """
    if isinstance(ref, LocalRelease):
        path = Path(ref.path)
        if not path.is_file():
            raise TransferError(f"Local artifact not found: {path}")
        size = path.stat().st_size
        if size == 0:
            raise TransferError(f"Local artifact is empty: {path}")
        logger.debug("Using local artifact %s (%d bytes)", path, size)
        return FetchedArchive(local_file_path=path, size_bytes=size, source_description="local", is_temporary=False)

    if client is None:
        with build_client() as owned_client:
            return fetch_archive(
                ref,
                download_dir,
                client=owned_client,
                github_token=github_token,
                show_progress=show_progress,
                console=console,
                debug=debug,
            )

    zip_path = Path(download_dir) / ref.asset_name
    headers = dict(_github_auth_headers(github_token))
    headers["Accept"] = "application/octet-stream"
    logger.debug("Downloading %s to %s", ref.download_url, zip_path)

    written = 0
    try:
        with client.stream(
            "GET",
            ref.download_url,
            timeout=DOWNLOAD_TIMEOUT,
            follow_redirects=True,
            headers=headers,
        ) as response:
            if response.status_code != 200:
                error_msg = _format_rate_limit_error(response.status_code, response.headers, ref.download_url)
                if debug:
                    response.read()
                    error_msg += f"\n\n[dim]Response body (truncated 400):[/dim]\n{response.text[:400]}"
                raise TransferError(error_msg)
            total_size = int(response.headers.get("content-length", 0))
            with open(zip_path, "wb") as f:
                if show_progress and total_size:
                    with Progress(
                        SpinnerColumn(),
                        TextColumn("[progress.description]{task.description}"),
                        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                        console=console,
                    ) as progress:
                        task = progress.add_task("Downloading...", total=total_size)
                        for chunk in response.iter_bytes(chunk_size=CHUNK_SIZE):
                            f.write(chunk)
                            written += len(chunk)
                            progress.update(task, completed=written)
                else:
                    for chunk in response.iter_bytes(chunk_size=CHUNK_SIZE):
                        f.write(chunk)
                        written += len(chunk)
    except Exception as e:
        if zip_path.exists():
            zip_path.unlink()
        if isinstance(e, TransferError):
            raise
        raise TransferError(f"Error downloading {ref.asset_name}: {e}") from e

    return FetchedArchive(
        local_file_path=zip_path,
        size_bytes=written,
        source_description=f"release {ref.release_tag}",
        is_temporary=True,
    )
