"""Session folders and the shared ``currentSession`` pointer.

The pointer lives in ``.buildforce/buildforce.json`` and is read by the CLI as
well as by shell helpers that run in separate processes. Every write goes
through :func:`buildforce_cli.config.save_config`, which replaces the file
atomically; concurrent writers are not locked against each other.

Sessions themselves are folders under ``.buildforce/sessions/`` with a
``spec.yaml`` descriptor. Descriptors keep every value on a single line so
line-oriented readers can extract fields with a regex.
"""

import json
import logging
import re
from datetime import date, datetime, timezone
from pathlib import Path

import yaml

from .config import atomic_write_text, read_config_data, save_config
from .constants import BUILDFORCE_DIR, SESSION_DESCRIPTOR, SESSIONS_DIRNAME
from .errors import SessionStateError
from .models import ACTIVE_SESSION_STATUSES, SESSION_STATUSES, SessionMetadata, SessionResolution

logger = logging.getLogger(__name__)

MIN_TOKEN_LENGTH = 3
MATCH_RATIO = 0.6
MIN_MATCHED_TOKENS = 2

# Filler words dropped when deriving a folder name from an intent
STOPWORDS = frozenset(
    "a an the i want to build create add implement make write develop need should would like "
    "and or for with of in on at from by is are be this that it we you".split()
)

_NUMBER_PREFIX_RE = re.compile(r"^(\d+)-")


def sessions_root(project_path: Path) -> Path:
    return Path(project_path) / BUILDFORCE_DIR / SESSIONS_DIRNAME


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


# ---------------------------------------------------------------------------
# Fuzzy matching
# ---------------------------------------------------------------------------

def normalize_text(text: str) -> str:
    """Lowercase and collapse everything but ``[a-z0-9]`` into single spaces."""
    return " ".join(re.sub(r"[^a-z0-9]", " ", text.lower()).split())


def significant_tokens(text: str) -> list[str]:
    return [word for word in normalize_text(text).split() if len(word) >= MIN_TOKEN_LENGTH]


def fuzzy_match(candidate: str, intent: str) -> bool:
    """Return True when ``intent`` plausibly refers to the session named ``candidate``.

    Tokens are compared for exact equality: "auth" does not match
    "authentication". At least 60% of the intent's significant tokens, and
    no fewer than two, must appear in the candidate.
    """
    candidate_tokens = set(significant_tokens(candidate))
    intent_tokens = significant_tokens(intent)
    if not intent_tokens:
        return False
    matches = sum(1 for word in intent_tokens if word in candidate_tokens)
    return matches / len(intent_tokens) >= MATCH_RATIO and matches >= MIN_MATCHED_TOKENS


def slugify_intent(intent: str, max_words: int = 3) -> str:
    words = normalize_text(intent).split()
    meaningful = [word for word in words if word not in STOPWORDS]
    slug = "-".join((meaningful or words)[:max_words])
    return slug or "session"


# ---------------------------------------------------------------------------
# Current session pointer
# ---------------------------------------------------------------------------

def read_current(project_path: Path) -> str | None:
    data = read_config_data(project_path)
    if not data:
        return None
    current = data.get("currentSession")
    return str(current) if current else None


def write_current(project_path: Path, session_id: str) -> None:
    if not session_id:
        raise ValueError("session_id must be a non-empty string")
    save_config(project_path, {"currentSession": session_id})
    logger.debug("Current session set to %s", session_id)


def clear_current(project_path: Path) -> None:
    save_config(project_path, {"currentSession": None})
    logger.debug("Current session cleared")


def session_path(project_path: Path, session_id: str) -> Path:
    """Return the folder of ``session_id``, raising if it does not exist."""
    path = sessions_root(project_path) / session_id
    if not path.is_dir():
        raise SessionStateError(f"Session folder not found: {session_id}")
    return path


def current_session_path(project_path: Path) -> Path:
    session_id = read_current(project_path)
    if not session_id:
        raise SessionStateError("No current session. Run /buildforce.plan to create one.")
    return session_path(project_path, session_id)


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------

def _as_text(value) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return "" if value is None else str(value).strip()


def parse_session_descriptor(path: Path) -> SessionMetadata | None:
    """Parse a ``spec.yaml`` descriptor, returning None when it is unusable."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        return None
    if not isinstance(data, dict):
        return None

    session_id = _as_text(data.get("id"))
    name = _as_text(data.get("name"))
    status = _as_text(data.get("status"))
    if not session_id or not name or status not in SESSION_STATUSES:
        return None

    return SessionMetadata(
        id=session_id,
        name=name,
        status=status,
        created=_as_text(data.get("created")),
        last_updated=_as_text(data.get("last_updated")),
    )


def render_session_descriptor(metadata: SessionMetadata) -> str:
    # json.dumps yields a double-quoted scalar that YAML reads back verbatim
    return (
        f"id: {metadata.id}\n"
        f"name: {json.dumps(metadata.name, ensure_ascii=False)}\n"
        f"status: {metadata.status}\n"
        f"created: \"{metadata.created}\"\n"
        f"last_updated: \"{metadata.last_updated}\"\n"
    )


def update_descriptor_fields(path: Path, fields: dict) -> None:
    """Rewrite single-line ``key: value`` fields of a descriptor in place.

    The first line for each key is replaced; missing keys are appended. All
    other content, including comments and nested sections, is kept.
    """
    lines = path.read_text(encoding="utf-8").splitlines()
    for key, value in fields.items():
        new_line = f"{key}: {value}"
        pattern = re.compile(rf"^{re.escape(key)}:")
        for i, line in enumerate(lines):
            if pattern.match(line):
                lines[i] = new_line
                break
        else:
            lines.append(new_line)
    atomic_write_text(path, "\n".join(lines) + "\n")


def _session_dirs(project_path: Path) -> list[Path]:
    root = sessions_root(project_path)
    if not root.is_dir():
        return []
    return sorted((p for p in root.iterdir() if p.is_dir()), key=lambda p: p.name)


def list_sessions(project_path: Path) -> list[SessionMetadata]:
    sessions = []
    for directory in _session_dirs(project_path):
        metadata = parse_session_descriptor(directory / SESSION_DESCRIPTOR)
        if metadata is None:
            logger.debug("Skipping session folder without a valid descriptor: %s", directory.name)
            continue
        sessions.append(metadata)
    return sessions


def list_active_sessions(project_path: Path) -> list[SessionMetadata]:
    """Draft and in-progress sessions, most recently updated first."""
    active = [s for s in list_sessions(project_path) if s.status in ACTIVE_SESSION_STATUSES]
    return sorted(active, key=lambda s: s.last_updated, reverse=True)


# ---------------------------------------------------------------------------
# Create or update
# ---------------------------------------------------------------------------

def _candidate_name(directory: Path) -> str:
    metadata = parse_session_descriptor(directory / SESSION_DESCRIPTOR)
    if metadata is not None:
        return metadata.name
    return _NUMBER_PREFIX_RE.sub("", directory.name)


def _next_session_number(directories: list[Path]) -> int:
    highest = 0
    for directory in directories:
        match = _NUMBER_PREFIX_RE.match(directory.name)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest + 1


def create_session(project_path: Path, intent: str) -> SessionMetadata:
    """Create a numbered session folder with a draft descriptor."""
    directories = _session_dirs(project_path)
    session_id = f"{_next_session_number(directories):03d}-{slugify_intent(intent)}"
    folder = sessions_root(project_path) / session_id
    folder.mkdir(parents=True, exist_ok=False)

    now = _timestamp()
    metadata = SessionMetadata(
        id=session_id,
        name=" ".join(intent.split()),
        status="draft",
        created=now,
        last_updated=now,
    )
    (folder / SESSION_DESCRIPTOR).write_text(render_session_descriptor(metadata), encoding="utf-8")
    logger.debug("Created session %s", session_id)
    return metadata


def resolve_or_create_session(project_path: Path, intent: str) -> SessionResolution:
    """Pick the session an intent refers to, creating one when nothing fits.

    Priority: the current pointer when its folder still exists, then the first
    session (in folder name order) whose name fuzzy-matches ``intent``, then a
    new session. The chosen id becomes the current session.
    """
    current = read_current(project_path)
    if current and (sessions_root(project_path) / current).is_dir():
        return SessionResolution(session_id=current, is_update=True)

    for directory in _session_dirs(project_path):
        if fuzzy_match(_candidate_name(directory), intent):
            write_current(project_path, directory.name)
            return SessionResolution(session_id=directory.name, is_update=True)

    metadata = create_session(project_path, intent)
    write_current(project_path, metadata.id)
    return SessionResolution(session_id=metadata.id, is_update=False)


def complete_current_session(project_path: Path) -> str:
    """Mark the current session completed and clear the pointer."""
    folder = current_session_path(project_path)
    descriptor = folder / SESSION_DESCRIPTOR
    if not descriptor.is_file():
        raise SessionStateError(f"No {SESSION_DESCRIPTOR} found in {folder}")
    update_descriptor_fields(descriptor, {"status": "completed", "last_updated": f"\"{_timestamp()}\""})
    clear_current(project_path)
    return folder.name
