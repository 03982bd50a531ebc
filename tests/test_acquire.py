import io

import httpx
import pytest
from rich.console import Console

from buildforce_cli.acquire import acquire_templates
from buildforce_cli.errors import AcquisitionError
from buildforce_cli.github import RELEASES_URL
from buildforce_cli.tracker import StepTracker


def test_partial_failure_keeps_successful_agents(tmp_path, artifacts_dir):
    project = tmp_path / "proj"
    tracker = StepTracker("Init")

    result = acquire_templates(project, ["claude", "gemini"], "sh", tracker=tracker, local_dir=artifacts_dir)

    assert [o.agent_id for o in result.outcomes] == ["claude", "gemini"]
    assert [o.succeeded for o in result.outcomes] == [True, False]
    assert result.succeeded_agents == ["claude"]
    assert result.resolved_version == "v0.1.0"
    assert "Local artifact not found" in result.failed[0].error_message
    assert (project / ".claude" / "commands" / "buildforce.plan.md").exists()

    assert tracker.get("fetch-claude")["status"] == "done"
    assert tracker.get("extract-claude")["status"] == "done"
    assert tracker.get("fetch-gemini")["status"] == "error"
    assert tracker.get("extract-gemini")["status"] == "skipped"
    # Local artifacts are never deleted
    assert (artifacts_dir / "buildforce-cli-template-claude-sh-v0.1.0.zip").exists()


def test_later_failure_does_not_remove_earlier_work(tmp_path, artifacts_dir):
    (artifacts_dir / "buildforce-cli-template-gemini-sh-v0.1.0.zip").write_text("not a zip")
    project = tmp_path / "proj"

    result = acquire_templates(project, ["claude", "gemini"], "sh", local_dir=artifacts_dir)

    assert result.succeeded_agents == ["claude"]
    assert "Error extracting" in result.failed[0].error_message
    assert (project / ".buildforce" / "scripts" / "bash" / "common.sh").exists()


def test_failure_before_success_still_succeeds(tmp_path, artifacts_dir):
    result = acquire_templates(tmp_path / "proj", ["gemini", "claude"], "sh", local_dir=artifacts_dir)

    assert [o.succeeded for o in result.outcomes] == [False, True]
    assert result.resolved_version == "v0.1.0"


def test_all_agents_failing_raises_and_leaves_no_directory(tmp_path, artifacts_dir):
    project = tmp_path / "proj"

    with pytest.raises(AcquisitionError) as excinfo:
        acquire_templates(project, ["gemini", "cursor"], "sh", local_dir=artifacts_dir)

    assert [o.agent_id for o in excinfo.value.outcomes] == ["gemini", "cursor"]
    message = str(excinfo.value)
    assert message.startswith("All agents failed to acquire a template:")
    assert "• gemini:" in message
    assert "• cursor:" in message
    assert not project.exists()


def _remote_handler(claude_zip: bytes):
    """Release index with claude and gemini assets; the gemini download times out."""
    release = {
        "tag_name": "v0.3.0",
        "assets": [
            {"name": "buildforce-cli-template-claude-sh-v0.3.0.zip", "url": "https://api.example/assets/1", "size": len(claude_zip)},
            {"name": "buildforce-cli-template-gemini-sh-v0.3.0.zip", "url": "https://api.example/assets/2", "size": 10},
        ],
    }

    def handler(request):
        url = str(request.url)
        if url == RELEASES_URL:
            return httpx.Response(200, json=[release])
        if url.endswith("/assets/1"):
            return httpx.Response(200, content=claude_zip)
        raise httpx.ReadTimeout("timed out", request=request)

    return handler


def test_remote_download_timeout_for_one_agent(tmp_path, template_zip_bytes):
    client = httpx.Client(transport=httpx.MockTransport(_remote_handler(template_zip_bytes)))
    downloads = tmp_path / "downloads"
    downloads.mkdir()
    project = tmp_path / "proj"

    result = acquire_templates(project, ["claude", "gemini"], "sh", client=client, download_dir=downloads)

    assert [o.succeeded for o in result.outcomes] == [True, False]
    assert result.resolved_version == "v0.3.0"
    assert "timed out" in result.failed[0].error_message
    assert list(downloads.glob("*.zip")) == []
    assert (project / ".claude" / "commands" / "buildforce.plan.md").exists()


def test_console_without_tracker_shows_download_progress(tmp_path, template_zip_bytes):
    client = httpx.Client(transport=httpx.MockTransport(_remote_handler(template_zip_bytes)))
    buffer = io.StringIO()

    acquire_templates(
        tmp_path / "proj",
        ["claude"],
        "sh",
        client=client,
        download_dir=tmp_path,
        console=Console(file=buffer, force_terminal=False, width=100),
    )

    assert "Downloading..." in buffer.getvalue()


def test_tracker_suppresses_download_progress(tmp_path, template_zip_bytes):
    client = httpx.Client(transport=httpx.MockTransport(_remote_handler(template_zip_bytes)))
    buffer = io.StringIO()

    acquire_templates(
        tmp_path / "proj",
        ["claude"],
        "sh",
        tracker=StepTracker("Init"),
        client=client,
        download_dir=tmp_path,
        console=Console(file=buffer, force_terminal=False, width=100),
    )

    assert "Downloading..." not in buffer.getvalue()
