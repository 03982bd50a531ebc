"""Exception types raised by the acquisition and session layers.

Library code raises these; the CLI decides how loudly to report them.
"""


class BuildforceError(Exception):
    """Base class for all Buildforce failures."""


class ResolutionError(BuildforceError):
    """No matching release, asset or local artifact could be selected."""


class TransferError(BuildforceError):
    """Downloading an archive failed (HTTP status, stream or timeout)."""


class MaterializationError(BuildforceError):
    """Extracting or merging an archive into the project failed."""


class SessionStateError(BuildforceError):
    """The session pointer or a session folder is unusable."""


class AcquisitionError(BuildforceError):
    """Every requested agent failed to acquire its template."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        lines = ["All agents failed to acquire a template:"]
        for outcome in self.outcomes:
            lines.append(f"  • {outcome.agent_id}: {outcome.error_message}")
        super().__init__("\n".join(lines))
