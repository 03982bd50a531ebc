from contextlib import contextmanager

from rich.console import Console
from rich.live import Live

STEP_STATUSES = ("pending", "running", "done", "error", "skipped")

_SYMBOLS = {
    "done": "[green]●[/green]",
    "pending": "[green dim]○[/green dim]",
    "running": "[cyan]○[/cyan]",
    "error": "[red]●[/red]",
    "skipped": "[yellow]○[/yellow]",
}


class StepTracker:
    """Track and render hierarchical steps without emojis, similar to Claude Code tree output.
    Supports live auto-refresh via an attached refresh callback.
    """
    def __init__(self, title: str):
        self.title = title
        self.steps = []  # list of dicts: {key, label, status, detail}
        self.status_order = {status: i for i, status in enumerate(STEP_STATUSES)}
        self._refresh_cb = None  # callable to trigger UI refresh

    def attach_refresh(self, cb):
        self._refresh_cb = cb

    def add(self, key: str, label: str):
        if key not in [s["key"] for s in self.steps]:
            self.steps.append({"key": key, "label": label, "status": "pending", "detail": ""})
            self._maybe_refresh()

    def start(self, key: str, detail: str = ""):
        self.set_status(key, "running", detail)

    def complete(self, key: str, detail: str = ""):
        self.set_status(key, "done", detail)

    def error(self, key: str, detail: str = ""):
        self.set_status(key, "error", detail)

    def skip(self, key: str, detail: str = ""):
        self.set_status(key, "skipped", detail)

    def set_status(self, key: str, status: str, detail: str = ""):
        if status not in self.status_order:
            raise ValueError(f"Unknown step status '{status}'. Expected one of: {', '.join(STEP_STATUSES)}")

        for s in self.steps:
            if s["key"] == key:
                s["status"] = status
                if detail:
                    s["detail"] = detail
                self._maybe_refresh()
                return

        # Unknown key: record it under its own key so misordered calls never fail
        self.steps.append({"key": key, "label": key, "status": status, "detail": detail})
        self._maybe_refresh()

    def get(self, key: str) -> dict | None:
        for s in self.steps:
            if s["key"] == key:
                return s
        return None

    def _maybe_refresh(self):
        if self._refresh_cb:
            try:
                self._refresh_cb()
            except Exception:
                pass

    def render(self) -> str:
        lines = [f"[cyan]{self.title}[/cyan]"]
        for step in self.steps:
            label = step["label"]
            detail_text = step["detail"].strip() if step["detail"] else ""
            status = step["status"]
            symbol = _SYMBOLS.get(status, " ")

            if status == "pending":
                # Entire line light gray (pending)
                if detail_text:
                    line = f"  {symbol} [bright_black]{label} ({detail_text})[/bright_black]"
                else:
                    line = f"  {symbol} [bright_black]{label}[/bright_black]"
            else:
                # Label white, detail (if any) light gray in parentheses
                if detail_text:
                    line = f"  {symbol} [white]{label}[/white] [bright_black]({detail_text})[/bright_black]"
                else:
                    line = f"  {symbol} [white]{label}[/white]"

            lines.append(line)
        return "\n".join(lines)


@contextmanager
def live_tracker(tracker: StepTracker, console: Console):
    """Show ``tracker`` in a transient Live region redrawn on every step change.

    While the region is active, anything written to stdout or stderr (log
    records included) is printed above it instead of through it.
    """
    with Live(tracker.render(), console=console, refresh_per_second=8, transient=True) as live:
        tracker.attach_refresh(lambda: live.update(tracker.render()))
        try:
            yield live
        finally:
            tracker.attach_refresh(None)
