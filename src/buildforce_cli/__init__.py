#!/usr/bin/env python3
# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "typer",
#     "rich",
#     "readchar",
#     "httpx",
#     "truststore",
#     "pyyaml",
# ]
# ///
"""
Buildforce CLI - Setup tool for Buildforce projects

Usage:
    uvx --from buildforce-cli buildforce init <project-name>
    uvx --from buildforce-cli buildforce init .
    uvx --from buildforce-cli buildforce init --here

Or install globally:
    uv tool install buildforce-cli
    buildforce init <project-name>
    buildforce init --here --ai claude --ai gemini
    buildforce session
"""

import json
import logging
import os
import shutil
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

import httpx
import readchar
import typer
from rich.align import Align
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from typer.core import TyperGroup

from .acquire import acquire_templates, add_agent_steps
from .config import read_config, read_config_data, save_config
from .constants import (
    AGENT_CONFIG,
    BANNER,
    BUILDFORCE_DIR,
    CLAUDE_LOCAL_PATH,
    CONFIG_FILENAME,
    DEFAULT_LOCAL_DIR,
    SCRIPT_TYPE_CHOICES,
    SESSION_DESCRIPTOR,
    TAGLINE,
)
from .errors import BuildforceError, SessionStateError
from .github import build_client, fetch_release_index, select_latest_release
from .permissions import ensure_executable_scripts
from .session import (
    clear_current,
    complete_current_session,
    current_session_path,
    list_active_sessions,
    read_current,
    resolve_or_create_session,
    session_path,
    sessions_root,
    write_current,
)
from .tracker import StepTracker, live_tracker
from .upgrade import upgrade_project

logger = logging.getLogger(__name__)

console = Console()
# Writes to whatever sys.stderr is at call time
err_console = Console(stderr=True)


def configure_logging(debug: bool = False) -> None:
    """Send library diagnostics to stderr; DEBUG with --debug, warnings otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
        force=True,
    )


def get_key():
    """Get a single keypress in a cross-platform way using readchar."""
    key = readchar.readkey()

    if key == readchar.key.UP or key == readchar.key.CTRL_P:
        return 'up'
    if key == readchar.key.DOWN or key == readchar.key.CTRL_N:
        return 'down'

    if key == readchar.key.ENTER:
        return 'enter'

    if key == readchar.key.SPACE:
        return 'space'

    if key == readchar.key.ESC:
        return 'escape'

    if key == readchar.key.CTRL_C:
        raise KeyboardInterrupt

    return key


def select_with_arrows(options: dict, prompt_text: str = "Select an option", default_key: str = None) -> str:
    """
    Interactive selection using arrow keys with Rich Live display.

    Args:
        options: Dict with keys as option keys and values as descriptions
        prompt_text: Text to show above the options
        default_key: Default option key to start with

    Returns:
        Selected option key
    """
    option_keys = list(options.keys())
    if default_key and default_key in option_keys:
        selected_index = option_keys.index(default_key)
    else:
        selected_index = 0

    selected_key = None

    def create_selection_panel():
        """Create the selection panel with current selection highlighted."""
        table = Table.grid(padding=(0, 2))
        table.add_column(style="cyan", justify="left", width=3)
        table.add_column(style="white", justify="left")

        for i, key in enumerate(option_keys):
            if i == selected_index:
                table.add_row("▶", f"[cyan]{key}[/cyan] [dim]({options[key]})[/dim]")
            else:
                table.add_row(" ", f"[cyan]{key}[/cyan] [dim]({options[key]})[/dim]")

        table.add_row("", "")
        table.add_row("", "[dim]Use ↑/↓ to navigate, Enter to select, Esc to cancel[/dim]")

        return Panel(
            table,
            title=f"[bold]{prompt_text}[/bold]",
            border_style="cyan",
            padding=(1, 2)
        )

    console.print()

    with Live(create_selection_panel(), console=console, transient=True, auto_refresh=False) as live:
        while True:
            try:
                key = get_key()
                if key == 'up':
                    selected_index = (selected_index - 1) % len(option_keys)
                elif key == 'down':
                    selected_index = (selected_index + 1) % len(option_keys)
                elif key == 'enter':
                    selected_key = option_keys[selected_index]
                    break
                elif key == 'escape':
                    console.print("\n[yellow]Selection cancelled[/yellow]")
                    raise typer.Exit(1)

                live.update(create_selection_panel(), refresh=True)

            except KeyboardInterrupt:
                console.print("\n[yellow]Selection cancelled[/yellow]")
                raise typer.Exit(1)

    if selected_key is None:
        console.print("\n[red]Selection failed.[/red]")
        raise typer.Exit(1)

    return selected_key


def select_multiple_with_checkboxes(options: dict, prompt_text: str = "Select options", default_keys: list[str] | None = None) -> list[str]:
    """Checkbox selection: arrows move, space toggles, Enter confirms.

    Returns the chosen keys in the order they appear in ``options``.
    """
    option_keys = list(options.keys())
    chosen = {key for key in (default_keys or []) if key in options}
    cursor = 0

    def create_selection_panel():
        table = Table.grid(padding=(0, 2))
        table.add_column(style="cyan", justify="left", width=3)
        table.add_column(style="white", justify="left")

        for i, key in enumerate(option_keys):
            pointer = "▶" if i == cursor else " "
            box = "[green]◉[/green]" if key in chosen else "○"
            table.add_row(pointer, f"{box} [cyan]{key}[/cyan] [dim]({options[key]})[/dim]")

        table.add_row("", "")
        table.add_row("", "[dim]Use ↑/↓ to navigate, Space to toggle, Enter to confirm, Esc to cancel[/dim]")

        return Panel(table, title=f"[bold]{prompt_text}[/bold]", border_style="cyan", padding=(1, 2))

    console.print()

    with Live(create_selection_panel(), console=console, transient=True, auto_refresh=False) as live:
        while True:
            try:
                key = get_key()
                if key == 'up':
                    cursor = (cursor - 1) % len(option_keys)
                elif key == 'down':
                    cursor = (cursor + 1) % len(option_keys)
                elif key == 'space':
                    chosen.symmetric_difference_update({option_keys[cursor]})
                elif key == 'enter':
                    if chosen:
                        break
                elif key == 'escape':
                    console.print("\n[yellow]Selection cancelled[/yellow]")
                    raise typer.Exit(1)

                live.update(create_selection_panel(), refresh=True)

            except KeyboardInterrupt:
                console.print("\n[yellow]Selection cancelled[/yellow]")
                raise typer.Exit(1)

    return [key for key in option_keys if key in chosen]


class BannerGroup(TyperGroup):
    """Custom group that shows banner before help."""

    def format_help(self, ctx, formatter):
        # Show banner before help
        show_banner()
        super().format_help(ctx, formatter)


app = typer.Typer(
    name="buildforce",
    help="Setup tool for Buildforce spec-driven development projects",
    add_completion=False,
    invoke_without_command=True,
    cls=BannerGroup,
)


def show_banner():
    """Display the ASCII art banner."""
    banner_lines = BANNER.strip().split('\n')
    colors = ["bright_blue", "blue", "cyan", "bright_cyan", "white", "bright_white"]

    styled_banner = Text()
    for i, line in enumerate(banner_lines):
        color = colors[i % len(colors)]
        styled_banner.append(line + "\n", style=color)

    console.print(Align.center(styled_banner))
    console.print(Align.center(Text(TAGLINE, style="italic bright_yellow")))
    console.print()


@app.callback()
def callback(ctx: typer.Context):
    """Show banner when no subcommand is provided."""
    if ctx.invoked_subcommand is None and "--help" not in sys.argv and "-h" not in sys.argv:
        show_banner()
        console.print(Align.center("[dim]Run 'buildforce --help' for usage information[/dim]"))
        console.print()


def check_tool(tool: str, tracker: StepTracker = None) -> bool:
    """Check if a tool is installed. Optionally update tracker.

    Args:
        tool: Name of the tool to check
        tracker: Optional StepTracker to update with results

    Returns:
        True if tool is found, False otherwise
    """
    # `claude migrate-installer` removes the executable from PATH and leaves
    # an alias at ~/.claude/local/claude instead
    if tool == "claude":
        if CLAUDE_LOCAL_PATH.exists() and CLAUDE_LOCAL_PATH.is_file():
            if tracker:
                tracker.complete(tool, "available")
            return True

    found = shutil.which(tool) is not None

    if tracker:
        if found:
            tracker.complete(tool, "available")
        else:
            tracker.error(tool, "not found")

    return found


def is_git_repo(path: Path = None) -> bool:
    """Check if the specified path is inside a git repository."""
    if path is None:
        path = Path.cwd()

    if not path.is_dir():
        return False

    try:
        subprocess.run(
            ["git", "rev-parse", "--is-inside-work-tree"],
            check=True,
            capture_output=True,
            cwd=path,
        )
        return True
    except (subprocess.CalledProcessError, FileNotFoundError):
        return False


def init_git_repo(project_path: Path) -> Tuple[bool, Optional[str]]:
    """Initialize a git repository with an initial commit.

    Returns:
        Tuple of (success: bool, error_message: Optional[str])
    """
    try:
        for cmd in (
            ["git", "init"],
            ["git", "add", "."],
            ["git", "commit", "-m", "Initial commit from Buildforce template"],
        ):
            subprocess.run(cmd, check=True, capture_output=True, text=True, cwd=project_path)
        return True, None
    except subprocess.CalledProcessError as e:
        error_msg = f"Command: {' '.join(e.cmd)}\nExit code: {e.returncode}"
        if e.stderr:
            error_msg += f"\nError: {e.stderr.strip()}"
        elif e.stdout:
            error_msg += f"\nOutput: {e.stdout.strip()}"
        return False, error_msg


def find_project_root(start: Path | None = None) -> Path | None:
    """Walk up from ``start`` to the first directory holding .buildforce/."""
    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / BUILDFORCE_DIR).is_dir():
            return candidate
    return None


def _parse_agents(values: list[str] | None) -> list[str]:
    """Flatten repeated and comma separated --ai values, keeping first occurrence order."""
    agents: list[str] = []
    for value in values or []:
        for part in value.split(","):
            part = part.strip()
            if part and part not in agents:
                agents.append(part)
    return agents


def _validate_agents(agents: list[str]) -> None:
    for agent in agents:
        if agent.startswith("--"):
            console.print(f"[red]Error:[/red] Invalid value for --ai: '{agent}'")
            console.print("[yellow]Hint:[/yellow] Did you forget to provide a value for --ai?")
            console.print("[yellow]Example:[/yellow] buildforce init --ai claude --here")
            raise typer.Exit(1)
        if agent not in AGENT_CONFIG:
            console.print(f"[red]Error:[/red] Invalid AI assistant '{agent}'. Choose from: {', '.join(AGENT_CONFIG.keys())}")
            raise typer.Exit(1)


def _select_script(script_type: str | None, default: str | None = None) -> str:
    if script_type:
        if script_type not in SCRIPT_TYPE_CHOICES:
            console.print(f"[red]Error:[/red] Invalid script type '{script_type}'. Choose from: {', '.join(SCRIPT_TYPE_CHOICES.keys())}")
            raise typer.Exit(1)
        return script_type
    if default:
        return default
    default_script = "ps" if os.name == "nt" else "sh"
    if sys.stdin.isatty():
        return select_with_arrows(SCRIPT_TYPE_CHOICES, "Choose script type (or press Enter)", default_script)
    return default_script


def _local_dir(local: str | None) -> Path | None:
    return Path(local) if local else None


def _print_partial_failure(failed) -> None:
    lines = [f"[cyan]{o.agent_id}[/cyan]: {o.error_message.splitlines()[0] if o.error_message else 'unknown error'}" for o in failed]
    console.print()
    console.print(Panel(
        "Templates for the following agents could not be installed:\n\n" + "\n".join(lines)
        + "\n\n[dim]The project was configured for the remaining agents.[/dim]",
        title="[yellow]Partial Template Failure[/yellow]",
        border_style="yellow",
        padding=(1, 2),
    ))


def _print_debug_environment() -> None:
    _env_pairs = [
        ("Python", sys.version.split()[0]),
        ("Platform", sys.platform),
        ("CWD", str(Path.cwd())),
    ]
    _label_width = max(len(k) for k, _ in _env_pairs)
    env_lines = [f"{k.ljust(_label_width)} → [bright_black]{v}[/bright_black]" for k, v in _env_pairs]
    console.print(Panel("\n".join(env_lines), title="Debug Environment", border_style="magenta"))


@app.command()
def init(
    project_name: str = typer.Argument(None, help="Name for your new project directory (optional if using --here, or use '.' for current directory)"),
    ai_assistants: Optional[list[str]] = typer.Option(None, "--ai", help="AI assistant(s) to use; repeat the flag or separate with commas: " + ", ".join(AGENT_CONFIG.keys())),
    script_type: str = typer.Option(None, "--script", help="Script type to use: sh or ps"),
    ignore_agent_tools: bool = typer.Option(False, "--ignore-agent-tools", help="Skip checks for AI agent tools like Claude Code"),
    no_git: bool = typer.Option(False, "--no-git", help="Skip git repository initialization"),
    here: bool = typer.Option(False, "--here", help="Initialize project in the current directory instead of creating a new one"),
    force: bool = typer.Option(False, "--force", help="Force merge/overwrite when using --here (skip confirmation)"),
    skip_tls: bool = typer.Option(False, "--skip-tls", help="Skip SSL/TLS verification (not recommended)"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose diagnostic output for network and extraction failures"),
    github_token: str = typer.Option(None, "--github-token", help="GitHub token to use for API requests (or set GH_TOKEN or GITHUB_TOKEN environment variable)"),
    local: str = typer.Option(None, "--local", help=f"Use template archives from a local artifacts directory (e.g. {DEFAULT_LOCAL_DIR}) instead of GitHub"),
):
    """
    Initialize a new Buildforce project from the latest template.

    This command will:
    1. Check that required tools are installed (git is optional)
    2. Let you choose one or more AI assistants
    3. Download the matching templates from GitHub (or a local artifacts directory)
    4. Merge them into a new project directory or the current directory
    5. Write .buildforce/buildforce.json
    6. Initialize a fresh git repository (if not --no-git and no existing repo)

    Examples:
        buildforce init my-project
        buildforce init my-project --ai claude
        buildforce init my-project --ai claude --ai gemini
        buildforce init . --ai claude,cursor
        buildforce init --here --force
        buildforce init my-project --ai claude --local .genreleases
    """
    configure_logging(debug)
    show_banner()

    agents = _parse_agents(ai_assistants)
    _validate_agents(agents)

    if project_name == ".":
        here = True
        project_name = None

    if here and project_name:
        console.print("[red]Error:[/red] Cannot specify both project name and --here flag")
        raise typer.Exit(1)

    if not here and not project_name:
        console.print("[red]Error:[/red] Must specify either a project name, use '.' for current directory, or use --here flag")
        raise typer.Exit(1)

    if here:
        project_name = Path.cwd().name
        project_path = Path.cwd()

        existing_items = list(project_path.iterdir())
        if existing_items:
            console.print(f"[yellow]Warning:[/yellow] Current directory is not empty ({len(existing_items)} items)")
            console.print("[yellow]Template files will be merged with existing content and may overwrite existing files[/yellow]")
            if force:
                console.print("[cyan]--force supplied: skipping confirmation and proceeding with merge[/cyan]")
            else:
                response = typer.confirm("Do you want to continue?")
                if not response:
                    console.print("[yellow]Operation cancelled[/yellow]")
                    raise typer.Exit(0)
    else:
        project_path = Path(project_name).resolve()
        if project_path.exists():
            error_panel = Panel(
                f"Directory '[cyan]{project_name}[/cyan]' already exists\n"
                "Please choose a different project name or remove the existing directory.",
                title="[red]Directory Conflict[/red]",
                border_style="red",
                padding=(1, 2)
            )
            console.print()
            console.print(error_panel)
            raise typer.Exit(1)

    current_dir = Path.cwd()

    setup_lines = [
        "[cyan]Buildforce Project Setup[/cyan]",
        "",
        f"{'Project':<15} [green]{project_path.name}[/green]",
        f"{'Working Path':<15} [dim]{current_dir}[/dim]",
    ]
    if not here:
        setup_lines.append(f"{'Target Path':<15} [dim]{project_path}[/dim]")
    if local:
        setup_lines.append(f"{'Templates':<15} [dim]{Path(local).resolve()}[/dim]")

    console.print(Panel("\n".join(setup_lines), border_style="cyan", padding=(1, 2)))

    should_init_git = False
    if not no_git:
        should_init_git = check_tool("git")
        if not should_init_git:
            console.print("[yellow]Git not found - will skip repository initialization[/yellow]")

    if not agents:
        ai_choices = {key: config["name"] for key, config in AGENT_CONFIG.items()}
        agents = select_multiple_with_checkboxes(
            ai_choices,
            "Choose your AI assistant(s):",
            ["claude"],
        )

    # Only the first agent is checked to avoid a prompt per agent
    if not ignore_agent_tools:
        agent_config = AGENT_CONFIG[agents[0]]
        if agent_config["requires_cli"] and not check_tool(agents[0]):
            error_panel = Panel(
                f"[cyan]{agents[0]}[/cyan] not found\n"
                f"Install from: [cyan]{agent_config['install_url']}[/cyan]\n"
                f"{agent_config['name']} is required to continue with this project type.\n\n"
                "Tip: Use [cyan]--ignore-agent-tools[/cyan] to skip this check",
                title="[red]Agent Detection Error[/red]",
                border_style="red",
                padding=(1, 2)
            )
            console.print()
            console.print(error_panel)
            raise typer.Exit(1)

    selected_script = _select_script(script_type)

    console.print(f"[cyan]Selected AI assistant(s):[/cyan] {', '.join(agents)}")
    console.print(f"[cyan]Selected script type:[/cyan] {selected_script}")
    console.print()

    tracker = StepTracker("Initialize Buildforce Project")

    tracker.add("precheck", "Check required tools")
    tracker.complete("precheck", "ok")
    tracker.add("ai-select", "Select AI assistant(s)")
    tracker.complete("ai-select", ", ".join(agents))
    tracker.add("script-select", "Select script type")
    tracker.complete("script-select", selected_script)
    add_agent_steps(tracker, agents)
    for key, label in [
        ("chmod", "Ensure scripts executable"),
        ("config", "Create configuration file"),
        ("git", "Initialize git repository"),
        ("final", "Finalize"),
    ]:
        tracker.add(key, label)

    git_error_message = None
    result = None
    with live_tracker(tracker, console):
        try:
            with build_client(skip_tls) as client:
                result = acquire_templates(
                    project_path,
                    agents,
                    selected_script,
                    here,
                    tracker=tracker,
                    client=client,
                    github_token=github_token,
                    local_dir=_local_dir(local),
                    download_dir=current_dir,
                    debug=debug,
                )

            ensure_executable_scripts(project_path, tracker=tracker)

            tracker.start("config")
            updates = {
                "selectedAssistants": result.succeeded_agents,
                "scriptFlavor": selected_script,
                "templateVersion": result.resolved_version,
            }
            existing = read_config_data(project_path) or {}
            if "currentSession" not in existing:
                updates["currentSession"] = None
            save_config(project_path, updates)
            tracker.complete("config", f"{BUILDFORCE_DIR}/{CONFIG_FILENAME}")

            if not no_git:
                tracker.start("git")
                if is_git_repo(project_path):
                    tracker.complete("git", "existing repo detected")
                elif should_init_git:
                    success, error_msg = init_git_repo(project_path)
                    if success:
                        tracker.complete("git", "initialized")
                    else:
                        tracker.error("git", "init failed")
                        git_error_message = error_msg
                else:
                    tracker.skip("git", "git not available")
            else:
                tracker.skip("git", "--no-git flag")

            tracker.complete("final", "project ready")
        except (BuildforceError, OSError) as e:
            tracker.error("final", str(e).splitlines()[0] if str(e) else type(e).__name__)
            console.print(tracker.render())
            console.print()
            console.print(Panel(f"Initialization failed: {e}", title="Failure", border_style="red"))
            if debug:
                _print_debug_environment()
            if not here and project_path.exists():
                shutil.rmtree(project_path)
            raise typer.Exit(1)

    console.print(tracker.render())
    console.print("\n[bold green]Buildforce is initialized.[/bold green]")

    if result.failed:
        _print_partial_failure(result.failed)

    if git_error_message:
        console.print()
        git_error_panel = Panel(
            f"[yellow]Warning:[/yellow] Git repository initialization failed\n\n"
            f"{git_error_message}\n\n"
            f"[dim]You can initialize git manually later with:[/dim]\n"
            f"[cyan]cd {project_path if not here else '.'}[/cyan]\n"
            f"[cyan]git init[/cyan]\n"
            f"[cyan]git add .[/cyan]\n"
            f"[cyan]git commit -m \"Initial commit\"[/cyan]",
            title="[red]Git Initialization Failed[/red]",
            border_style="red",
            padding=(1, 2)
        )
        console.print(git_error_panel)

    steps_lines = []
    if not here:
        steps_lines.append(f"1. Go to the project folder: [cyan]cd {project_name}[/cyan]")
    else:
        steps_lines.append("1. You're already in the project directory!")
    steps_lines.append("2. Start using slash commands with your AI agent:")
    steps_lines.append("   2.1 [cyan]/buildforce.research[/] - Gather context for a feature")
    steps_lines.append("   2.2 [cyan]/buildforce.plan[/] - Create or update the session spec and plan")
    steps_lines.append("   2.3 [cyan]/buildforce.build[/] - Implement the plan")
    steps_lines.append("   2.4 [cyan]/buildforce.complete[/] - Close the session and update context")
    steps_lines.append("3. Switch between active sessions with [cyan]buildforce session[/]")

    console.print()
    console.print(Panel("\n".join(steps_lines), title="Next Steps", border_style="cyan", padding=(1, 2)))


@app.command()
def upgrade(
    ai_assistants: Optional[list[str]] = typer.Option(None, "--ai", help="Override the AI assistant(s) recorded in buildforce.json"),
    script_type: str = typer.Option(None, "--script", help="Override the script type recorded in buildforce.json"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show which folders would be replaced without changing anything"),
    skip_tls: bool = typer.Option(False, "--skip-tls", help="Skip SSL/TLS verification (not recommended)"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose diagnostic output for network and extraction failures"),
    github_token: str = typer.Option(None, "--github-token", help="GitHub token to use for API requests (or set GH_TOKEN or GITHUB_TOKEN environment variable)"),
    local: str = typer.Option(None, "--local", help=f"Use template archives from a local artifacts directory (e.g. {DEFAULT_LOCAL_DIR})"),
):
    """
    Re-apply the latest templates to the current Buildforce project.

    Replaces the agents' command folders, .buildforce/templates and
    .buildforce/scripts. Sessions and context are kept. The replaced folders
    are backed up first and restored if the upgrade fails.

    Examples:
        buildforce upgrade --dry-run
        buildforce upgrade --ai claude --ai cursor
        buildforce upgrade --local .genreleases
    """
    configure_logging(debug)
    show_banner()

    project_path = Path.cwd()
    config = read_config(project_path)
    if config is None:
        console.print(f"[red]Error:[/red] Not in a buildforce project (no {BUILDFORCE_DIR}/{CONFIG_FILENAME}). Run 'buildforce init' first.")
        raise typer.Exit(1)

    agents = _parse_agents(ai_assistants) or list(config.selected_assistants)
    _validate_agents(agents)
    if not agents:
        console.print("[yellow]No AI assistant found in buildforce.json. Please select one:[/yellow]")
        ai_choices = {key: cfg["name"] for key, cfg in AGENT_CONFIG.items()}
        agents = select_multiple_with_checkboxes(ai_choices, "Choose your AI assistant(s):", ["claude"])

    selected_script = _select_script(script_type, default=config.script_flavor)

    console.print(f"[cyan]AI assistant(s):[/cyan] {', '.join(agents)}")
    console.print(f"[cyan]Script type:[/cyan] {selected_script}")
    console.print(f"[cyan]Current template version:[/cyan] {config.template_version or 'unknown'}")
    console.print()

    tracker = StepTracker("Preview Upgrade (Dry Run)" if dry_run else "Upgrade Buildforce Project")
    tracker.add("validate", "Validate prerequisites")
    tracker.complete("validate", "ok")
    add_agent_steps(tracker, agents)
    tracker.add("replace", "Replace managed folders")
    tracker.add("chmod", "Ensure scripts executable")
    tracker.add("update-config", f"Update {CONFIG_FILENAME}")
    tracker.add("final", "Finalize")

    with live_tracker(tracker, console):
        try:
            with build_client(skip_tls) as client:
                result = upgrade_project(
                    project_path,
                    agents,
                    selected_script,
                    dry_run=dry_run,
                    tracker=tracker,
                    client=client,
                    github_token=github_token,
                    local_dir=_local_dir(local),
                    download_dir=project_path,
                    debug=debug,
                )

            if dry_run:
                tracker.skip("chmod", "dry run")
                tracker.skip("update-config", "dry run")
                tracker.complete("final", "preview complete")
            else:
                ensure_executable_scripts(project_path, tracker=tracker)

                tracker.start("update-config")
                assistants = list(config.selected_assistants)
                assistants += [a for a in agents if a not in assistants]
                save_config(project_path, {
                    "selectedAssistants": assistants,
                    "scriptFlavor": selected_script,
                    "templateVersion": result.resolved_version,
                })
                tracker.complete("update-config", f"version {result.resolved_version}")
                tracker.complete("final", "upgrade complete")
        except (BuildforceError, OSError, httpx.HTTPError) as e:
            tracker.error("final", str(e).splitlines()[0] if str(e) else type(e).__name__)
            console.print(tracker.render())
            console.print()
            console.print(Panel(f"Upgrade failed: {e}", title="Failure", border_style="red"))
            if debug:
                _print_debug_environment()
            raise typer.Exit(1)

    console.print(tracker.render())

    if dry_run:
        table = Table(show_header=True, box=None, padding=(0, 2))
        table.add_column("Folder", style="cyan")
        table.add_column("Change")
        labels = {"update": "would be replaced", "create": "would be created", "skip": "[dim]not in template, kept[/dim]"}
        for item in result.replacements:
            table.add_row(item.relative_path, labels[item.action])
        console.print()
        console.print(Panel(table, title=f"Dry run: template {result.resolved_version}", border_style="cyan", padding=(1, 2)))
        return

    console.print(f"\n[bold green]Upgraded to {result.resolved_version}.[/bold green]")


@app.command()
def check():
    """Check that all required tools are installed."""
    show_banner()
    console.print("[bold]Checking for installed tools...[/bold]\n")

    tracker = StepTracker("Check Available Tools")

    tracker.add("git", "Git version control")
    git_ok = check_tool("git", tracker=tracker)

    agent_results = {}
    for agent_key, agent_config in AGENT_CONFIG.items():
        tracker.add(agent_key, agent_config["name"])

        if agent_config["requires_cli"]:
            agent_results[agent_key] = check_tool(agent_key, tracker=tracker)
        else:
            # IDE-based agent - skip CLI check and mark as optional
            tracker.skip(agent_key, "IDE-based, no CLI check")
            agent_results[agent_key] = False

    tracker.add("code", "Visual Studio Code")
    check_tool("code", tracker=tracker)

    console.print(tracker.render(), highlight=False)

    console.print("\n[bold green]Buildforce CLI is ready to use![/bold green]")

    if not git_ok:
        console.print("[dim]Tip: Install git for repository management[/dim]")

    if not any(agent_results.values()):
        console.print("[dim]Tip: Install an AI assistant for the best experience[/dim]")


def get_cli_version() -> str:
    import importlib.metadata
    try:
        return importlib.metadata.version("buildforce-cli")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


@app.command()
def version(
    github_token: str = typer.Option(None, "--github-token", help="GitHub token to use for API requests"),
):
    """Display version and system information."""
    import platform

    show_banner()

    template_version = "unknown"
    release_date = "unknown"
    try:
        with build_client() as client:
            release_data = select_latest_release(fetch_release_index(client, github_token=github_token))
        template_version = release_data.get("tag_name", "unknown").removeprefix("v")
        published = release_data.get("published_at")
        if published:
            release_date = datetime.fromisoformat(published.replace('Z', '+00:00')).strftime("%Y-%m-%d")
    except Exception as e:
        logger.debug("Could not fetch latest release: %s", e)

    project_config = read_config(find_project_root() or Path.cwd())

    info_table = Table(show_header=False, box=None, padding=(0, 2))
    info_table.add_column("Key", style="cyan", justify="right")
    info_table.add_column("Value", style="white")

    info_table.add_row("CLI Version", get_cli_version())
    info_table.add_row("Template Version", template_version)
    info_table.add_row("Released", release_date)
    if project_config is not None:
        info_table.add_row("Project Template", project_config.template_version or "unknown")
    info_table.add_row("", "")
    info_table.add_row("Python", platform.python_version())
    info_table.add_row("Platform", platform.system())
    info_table.add_row("Architecture", platform.machine())

    console.print(Panel(
        info_table,
        title="[bold cyan]Buildforce CLI Information[/bold cyan]",
        border_style="cyan",
        padding=(1, 2),
    ))
    console.print()


# ===== Session Commands =====

session_app = typer.Typer(
    name="session",
    help="Switch between and manage development sessions",
    add_completion=False,
    invoke_without_command=True,
)
app.add_typer(session_app, name="session")


def _require_project_root() -> Path:
    root = find_project_root()
    if root is None:
        console.print("[red]Error:[/red] Not in a buildforce project. Run 'buildforce init' first.")
        raise typer.Exit(1)
    return root


@session_app.callback()
def session_picker(ctx: typer.Context):
    """Pick the active session interactively (draft and in-progress sessions)."""
    if ctx.invoked_subcommand is not None:
        return

    project_path = _require_project_root()
    if read_config(project_path) is None:
        console.print("[red]Error:[/red] Not in a buildforce project. Run 'buildforce init' first.")
        raise typer.Exit(1)

    sessions = list_active_sessions(project_path)
    if not sessions:
        console.print("[yellow]No active sessions found. Run /buildforce.plan to create one.[/yellow]")
        return

    current = read_current(project_path)
    choices = {}
    for s in sessions:
        marker = "● " if s.id == current else ""
        choices[s.id] = f"{marker}{s.name} [{s.status}] updated {s.last_updated or 'unknown'}"

    selected = select_with_arrows(choices, "Select a session to switch to:", current)
    if selected == current:
        console.print(f"[dim]Already on session: {selected}[/dim]")
        return

    _switch_session(project_path, selected)


def _switch_session(project_path: Path, session_id: str) -> None:
    try:
        session_path(project_path, session_id)
    except SessionStateError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    write_current(project_path, session_id)
    console.print(f"[green]✓[/green] Switched to session: {session_id}")


@session_app.command("list")
def session_list():
    """List active sessions, most recently updated first."""
    project_path = _require_project_root()
    sessions = list_active_sessions(project_path)
    if not sessions:
        console.print("[yellow]No active sessions found.[/yellow]")
        return

    current = read_current(project_path)
    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("", width=1)
    table.add_column("Session", style="cyan")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Updated", style="dim")
    for s in sessions:
        status = "[yellow]in-progress[/yellow]" if s.status == "in-progress" else "[dim]draft[/dim]"
        table.add_row("[green]●[/green]" if s.id == current else "", s.id, s.name, status, s.last_updated)
    console.print(table)


@session_app.command("current")
def session_current(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Print the current session id (empty when none)."""
    project_path = _require_project_root()
    current = read_current(project_path)
    if json_output:
        typer.echo(json.dumps({"CURRENT_SESSION": current}))
    elif current:
        typer.echo(current)


@session_app.command("switch")
def session_switch(session_id: str = typer.Argument(..., help="Session folder name")):
    """Make SESSION_ID the current session."""
    _switch_session(_require_project_root(), session_id)


@session_app.command("clear")
def session_clear():
    """Forget the current session."""
    clear_current(_require_project_root())
    typer.echo("Session state cleared successfully")


@session_app.command("resolve")
def session_resolve(
    intent: list[str] = typer.Argument(..., help="What the user wants to work on"),
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Reuse or create the session an intent refers to and make it current."""
    project_path = _require_project_root()
    resolution = resolve_or_create_session(project_path, " ".join(intent))
    folder = sessions_root(project_path) / resolution.session_id
    payload = {
        "FOLDER_NAME": resolution.session_id,
        "SPEC_FILE": str(folder / SESSION_DESCRIPTOR),
        "SPEC_DIR": str(folder),
        "IS_UPDATE": resolution.is_update,
    }
    if json_output:
        typer.echo(json.dumps(payload))
    else:
        for key, value in payload.items():
            typer.echo(f"{key}: {str(value).lower() if isinstance(value, bool) else value}")


@session_app.command("paths")
def session_paths(
    json_output: bool = typer.Option(False, "--json", help="Output in JSON format"),
):
    """Print the project root and the current session folder."""
    project_path = _require_project_root()
    try:
        folder = current_session_path(project_path)
    except SessionStateError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(1)
    payload = {"BUILDFORCE_ROOT": str(project_path), "SPEC_DIR": str(folder)}
    if json_output:
        typer.echo(json.dumps(payload))
    else:
        for key, value in payload.items():
            typer.echo(f"{key}: {value}")


@session_app.command("complete")
def session_complete():
    """Mark the current session completed and clear the pointer."""
    project_path = _require_project_root()
    try:
        session_id = complete_current_session(project_path)
    except SessionStateError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Completed session: {session_id}")


def main():
    app()


if __name__ == "__main__":
    main()
