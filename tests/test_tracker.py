import io
import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from buildforce_cli.tracker import StepTracker, live_tracker


def test_add_ignores_duplicate_keys():
    tracker = StepTracker("Setup")
    tracker.add("fetch", "Fetch template")
    tracker.add("fetch", "Fetch again")

    assert len(tracker.steps) == 1
    assert tracker.get("fetch")["label"] == "Fetch template"


def test_set_status_on_unknown_key_appends_step():
    tracker = StepTracker("Setup")
    tracker.complete("surprise", "ok")

    step = tracker.get("surprise")
    assert step == {"key": "surprise", "label": "surprise", "status": "done", "detail": "ok"}


def test_invalid_status_is_rejected():
    tracker = StepTracker("Setup")
    tracker.add("fetch", "Fetch template")

    with pytest.raises(ValueError):
        tracker.set_status("fetch", "finished")


def test_detail_is_kept_when_not_replaced():
    tracker = StepTracker("Setup")
    tracker.add("fetch", "Fetch template")
    tracker.start("fetch", "contacting GitHub API")
    tracker.complete("fetch")

    assert tracker.get("fetch")["detail"] == "contacting GitHub API"


def test_render_has_one_line_per_step_plus_title():
    tracker = StepTracker("Setup")
    for key in ("a", "b", "c"):
        tracker.add(key, key.upper())
    tracker.error("b", "boom")

    lines = tracker.render().splitlines()
    assert len(lines) == 4
    assert lines[0] == "[cyan]Setup[/cyan]"
    assert "(boom)" in lines[2]
    assert lines[1].endswith("[bright_black]A[/bright_black]")


def test_refresh_callback_errors_do_not_propagate():
    tracker = StepTracker("Setup")

    def broken():
        raise RuntimeError("display gone")

    tracker.attach_refresh(broken)
    tracker.add("a", "A")
    tracker.complete("a")

    assert tracker.get("a")["status"] == "done"


def _log_through(console):
    logger = logging.getLogger("buildforce_cli.acquire")
    handler = RichHandler(console=console, show_time=False, show_path=False)
    logger.addHandler(handler)
    return logger, handler


def test_live_tracker_keeps_log_records_out_of_the_redraw():
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=False, width=120)
    tracker = StepTracker("Initialize Buildforce Project")
    tracker.add("fetch-gemini", "Fetch template (gemini)")
    tracker.add("chmod", "Ensure scripts executable")
    logger, handler = _log_through(console)
    try:
        with live_tracker(tracker, console):
            tracker.error("fetch-gemini", "not found")
            logger.warning("Template for gemini could not be installed")
            tracker.complete("chmod")
    finally:
        logger.removeHandler(handler)
    console.print(tracker.render())

    output = buffer.getvalue()
    assert output.count("Initialize Buildforce Project") == 1
    assert output.count("Template for gemini could not be installed") == 1
    assert output.index("Template for gemini") < output.index("Initialize Buildforce Project")


def test_live_tracker_redraws_on_terminal():
    buffer = io.StringIO()
    console = Console(file=buffer, force_terminal=True, width=120, color_system=None)
    tracker = StepTracker("Setup")
    tracker.add("a", "Alpha step")
    logger, handler = _log_through(console)
    try:
        with live_tracker(tracker, console) as live:
            tracker.complete("a", "finished")
            logger.warning("between redraws")
            assert "finished" in str(live.renderable)
    finally:
        logger.removeHandler(handler)

    output = buffer.getvalue()
    assert output.count("between redraws") == 1
    assert "Alpha step" in output


def test_live_tracker_detaches_on_exit():
    console = Console(file=io.StringIO(), force_terminal=False)
    tracker = StepTracker("Setup")
    tracker.add("a", "A")

    with live_tracker(tracker, console):
        pass
    tracker.complete("a")

    assert tracker._refresh_cb is None
