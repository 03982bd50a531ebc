import io

import httpx
import pytest
from rich.console import Console

from buildforce_cli.errors import TransferError
from buildforce_cli.fetcher import fetch_archive
from buildforce_cli.models import LocalRelease, RemoteRelease

ASSET = "buildforce-cli-template-claude-sh-v0.3.0.zip"


def _remote():
    return RemoteRelease(
        download_url="https://api.github.com/repos/x/y/releases/assets/1",
        asset_name=ASSET,
        size_bytes=11,
        release_tag="v0.3.0",
    )


def test_local_reference_is_used_in_place(tmp_path):
    artifact = tmp_path / "a.zip"
    artifact.write_bytes(b"zipbytes")

    archive = fetch_archive(LocalRelease(path=artifact, version="v0.1.0"), tmp_path / "downloads")

    assert archive.local_file_path == artifact
    assert archive.size_bytes == 8
    assert archive.source_description == "local"
    assert archive.is_temporary is False


def test_local_reference_to_missing_file(tmp_path):
    with pytest.raises(TransferError):
        fetch_archive(LocalRelease(path=tmp_path / "gone.zip", version="v0.1.0"), tmp_path)


def test_remote_download_streams_to_file(tmp_path):
    seen = {}

    def handler(request):
        seen["accept"] = request.headers.get("Accept")
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, content=b"hello world")

    client = httpx.Client(transport=httpx.MockTransport(handler))
    archive = fetch_archive(_remote(), tmp_path, client=client, github_token="tok")

    assert archive.local_file_path == tmp_path / ASSET
    assert archive.local_file_path.read_bytes() == b"hello world"
    assert archive.size_bytes == 11
    assert archive.source_description == "release v0.3.0"
    assert archive.is_temporary is True
    assert seen == {"accept": "application/octet-stream", "auth": "Bearer tok"}


def test_remote_failure_leaves_no_partial_file(tmp_path):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404, text="missing")))

    with pytest.raises(TransferError, match="status 404"):
        fetch_archive(_remote(), tmp_path, client=client)

    assert not (tmp_path / ASSET).exists()


def test_remote_transport_error_is_wrapped(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))

    with pytest.raises(TransferError, match="connection refused"):
        fetch_archive(_remote(), tmp_path, client=client)

    assert not (tmp_path / ASSET).exists()


def test_remote_download_can_show_progress(tmp_path):
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=False, width=100)
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"x" * 20000)))

    archive = fetch_archive(_remote(), tmp_path, client=client, show_progress=True, console=console)

    assert archive.size_bytes == 20000
    output = buffer.getvalue()
    assert "Downloading..." in output
    assert "100%" in output


def test_client_built_on_demand_is_closed(tmp_path, monkeypatch):
    built = []

    def fake_build_client(skip_tls=False):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(200, content=b"zip")))
        built.append(client)
        return client

    monkeypatch.setattr("buildforce_cli.fetcher.build_client", fake_build_client)

    archive = fetch_archive(_remote(), tmp_path)

    assert archive.local_file_path.read_bytes() == b"zip"
    assert len(built) == 1
    assert built[0].is_closed
