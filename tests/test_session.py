import json

import pytest

from buildforce_cli.config import config_path, save_config
from buildforce_cli.errors import SessionStateError
from buildforce_cli.session import (
    clear_current,
    complete_current_session,
    current_session_path,
    fuzzy_match,
    list_active_sessions,
    parse_session_descriptor,
    read_current,
    resolve_or_create_session,
    sessions_root,
    slugify_intent,
    write_current,
)


def _session(project, session_id, name, status="draft", last_updated="2025-01-01T00:00:00Z"):
    folder = sessions_root(project) / session_id
    folder.mkdir(parents=True)
    (folder / "spec.yaml").write_text(
        f'id: {session_id}\nname: "{name}"\nstatus: {status}\n'
        f'created: "2025-01-01T00:00:00Z"\nlast_updated: "{last_updated}"\n'
    )
    return folder


@pytest.fixture
def project(tmp_path):
    save_config(tmp_path, {"selectedAssistants": ["claude"], "currentSession": None})
    return tmp_path


# ---------------------------------------------------------------------------
# Pointer
# ---------------------------------------------------------------------------

def test_write_read_clear_current(project):
    assert read_current(project) is None

    write_current(project, "001-auth")
    assert read_current(project) == "001-auth"

    clear_current(project)
    assert read_current(project) is None


def test_clear_current_keeps_key_as_null(project):
    write_current(project, "001-auth")

    clear_current(project)

    data = json.loads(config_path(project).read_text())
    assert "currentSession" in data
    assert data["currentSession"] is None
    assert data["selectedAssistants"] == ["claude"]


def test_write_current_rejects_empty_id(project):
    with pytest.raises(ValueError):
        write_current(project, "")


def test_current_session_path_requires_existing_folder(project):
    with pytest.raises(SessionStateError, match="No current session"):
        current_session_path(project)

    write_current(project, "009-gone")
    with pytest.raises(SessionStateError, match="Session folder not found: 009-gone"):
        current_session_path(project)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

def test_list_active_sessions_sorted_and_filtered(project):
    _session(project, "001-old", "Old work", "draft", "2025-01-01T00:00:00Z")
    _session(project, "002-new", "New work", "in-progress", "2025-03-01T00:00:00Z")
    _session(project, "003-done", "Done work", "completed", "2025-04-01T00:00:00Z")
    (sessions_root(project) / "004-empty").mkdir()
    broken = sessions_root(project) / "005-broken"
    broken.mkdir()
    (broken / "spec.yaml").write_text("id: 005-broken\nstatus: shipped\n")

    sessions = list_active_sessions(project)

    assert [s.id for s in sessions] == ["002-new", "001-old"]
    assert sessions[0].name == "New work"
    assert all(s.is_active for s in sessions)


def test_descriptor_with_unquoted_timestamp(project):
    folder = sessions_root(project) / "001-x"
    folder.mkdir(parents=True)
    (folder / "spec.yaml").write_text("id: 001-x\nname: X\nstatus: draft\nlast_updated: 2025-01-02T03:04:05Z\n")

    metadata = parse_session_descriptor(folder / "spec.yaml")

    assert metadata.last_updated.startswith("2025-01-02T03:04:05")


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

def test_fuzzy_match_requires_exact_tokens():
    assert fuzzy_match("user-auth-jwt", "add user authentication") is False


def test_fuzzy_match_accepts_majority_overlap():
    assert fuzzy_match("User Authentication Flow", "add user authentication flow") is True


def test_fuzzy_match_rejects_half_overlap():
    assert fuzzy_match("alpha beta", "alpha beta gamma delta") is False


def test_fuzzy_match_accepts_three_of_five():
    assert fuzzy_match("alpha beta gamma", "alpha beta gamma delta epsilon") is True


def test_fuzzy_match_needs_two_tokens():
    assert fuzzy_match("dashboard", "dashboard") is False
    assert fuzzy_match("anything", "a b") is False


def test_slugify_drops_filler_words():
    assert slugify_intent("I want to build a payment retry queue") == "payment-retry-queue"
    assert slugify_intent("the a an") == "the-a-an"
    assert slugify_intent("!!!") == "session"


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------

def test_resolve_prefers_current_pointer(project):
    _session(project, "001-payments", "Payment retry queue")
    _session(project, "002-auth", "User authentication flow")
    write_current(project, "001-payments")

    resolution = resolve_or_create_session(project, "user authentication flow")

    assert resolution.session_id == "001-payments"
    assert resolution.is_update is True


def test_resolve_uses_fuzzy_match_when_pointer_is_stale(project):
    _session(project, "002-auth", "User authentication flow")
    write_current(project, "001-deleted")

    resolution = resolve_or_create_session(project, "user authentication flow rework")

    assert resolution.session_id == "002-auth"
    assert resolution.is_update is True
    assert read_current(project) == "002-auth"


def test_resolve_creates_next_numbered_session(project):
    _session(project, "004-auth", "User authentication flow")

    resolution = resolve_or_create_session(project, "I want to build a payment retry queue")

    assert resolution.session_id == "005-payment-retry-queue"
    assert resolution.is_update is False
    assert read_current(project) == "005-payment-retry-queue"
    metadata = parse_session_descriptor(sessions_root(project) / resolution.session_id / "spec.yaml")
    assert metadata.status == "draft"
    assert metadata.name == "I want to build a payment retry queue"


def test_complete_marks_session_and_clears_pointer(project):
    folder = _session(project, "001-auth", "User authentication flow", "in-progress")
    (folder / "spec.yaml").write_text((folder / "spec.yaml").read_text() + "# notes stay\n")
    write_current(project, "001-auth")

    assert complete_current_session(project) == "001-auth"

    assert read_current(project) is None
    metadata = parse_session_descriptor(folder / "spec.yaml")
    assert metadata.status == "completed"
    assert metadata.last_updated != "2025-01-01T00:00:00Z"
    assert "# notes stay" in (folder / "spec.yaml").read_text()
    assert list_active_sessions(project) == []


def test_complete_without_current_session(project):
    with pytest.raises(SessionStateError):
        complete_current_session(project)
