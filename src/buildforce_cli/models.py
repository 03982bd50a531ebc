from dataclasses import dataclass, field
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class LocalRelease:
    """A template archive found in a local artifacts directory."""
    path: Path
    version: str

    @property
    def kind(self) -> str:
        return "local"


@dataclass(frozen=True)
class RemoteRelease:
    """A template asset selected from the GitHub release index."""
    download_url: str
    asset_name: str
    size_bytes: int
    release_tag: str

    @property
    def kind(self) -> str:
        return "remote"


ReleaseReference = Union[LocalRelease, RemoteRelease]


@dataclass(frozen=True)
class FetchedArchive:
    local_file_path: Path
    size_bytes: int
    source_description: str
    # True when the fetcher created the file and the materializer must remove it
    is_temporary: bool = True


@dataclass(frozen=True)
class MaterializationResult:
    destination_path: Path
    copied_entry_count: int


@dataclass(frozen=True)
class AgentOutcome:
    agent_id: str
    succeeded: bool
    resolved_version: str | None = None
    error_message: str | None = None


@dataclass
class AcquisitionResult:
    resolved_version: str | None
    outcomes: list[AgentOutcome] = field(default_factory=list)

    @property
    def succeeded_agents(self) -> list[str]:
        return [o.agent_id for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> list[AgentOutcome]:
        return [o for o in self.outcomes if not o.succeeded]


SESSION_STATUSES = ("draft", "in-progress", "completed")
ACTIVE_SESSION_STATUSES = ("draft", "in-progress")


@dataclass(frozen=True)
class SessionMetadata:
    id: str
    name: str
    status: str
    created: str = ""
    last_updated: str = ""

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SESSION_STATUSES


@dataclass(frozen=True)
class SessionResolution:
    session_id: str
    is_update: bool


@dataclass(frozen=True)
class PlannedReplacement:
    """One template-managed folder an upgrade replaces.

    ``action`` is "update" (folder exists), "create" or "skip" (the new
    template does not ship it).
    """
    relative_path: str
    action: str


@dataclass
class UpgradeResult:
    resolved_version: str | None
    replacements: list[PlannedReplacement] = field(default_factory=list)
    dry_run: bool = False

    @property
    def changed(self) -> list[PlannedReplacement]:
        return [r for r in self.replacements if r.action != "skip"]
