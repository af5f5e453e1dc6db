"""CLI commands for planning and running interactive rebases."""

from __future__ import annotations

import asyncio
import copy
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import typer
import yaml

from .controller import ControllerStateError, ExecutionController
from .plan import PlanError
from .plan.autosquash import find_autosquash_markers
from .plan.todo import action_keyword
from .planfile import apply_plan_file, dump_plan_file, load_plan_file
from .tools.rewrite import GitRewriteBackend, RewriteError
from .tools.vcs import GitError

APP_HELP = "Plan, preview and run interactive rebases."
DEFAULT_CONFIG_NAME = "rebase-planner.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "repository": {
        "root": ".",
    },
    "rebase": {
        "autosquash": False,
        "autostash": False,
        "abort_on_conflict": False,
        "timeout": None,
    },
    "logging": {
        "level": "WARNING",
    },
}


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False)


def _merge_config(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Path, *, required: bool = False) -> Dict[str, Any]:
    """Load YAML configuration layered over the defaults.

    A missing file yields the defaults unless ``required`` is set.
    """
    if not config_path.exists():
        if required:
            raise typer.BadParameter(f"Config file not found: {config_path}")
        return _copy_config_template()

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return _merge_config(DEFAULT_CONFIG_TEMPLATE, data)


def _configure_logging(config: Dict[str, Any]) -> None:
    logging_cfg = config.get("logging") or {}
    level_name = str(logging_cfg.get("level", "WARNING")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _resolve_repo_root(config: Dict[str, Any], config_path: Path) -> Path:
    """Resolve the repository root from configuration."""

    repo_cfg = config.get("repository") or {}
    repo_root_path = Path(repo_cfg.get("root", "."))
    if not repo_root_path.is_absolute():
        repo_root_path = (config_path.parent / repo_root_path).resolve()
    return repo_root_path


def _build_backend(config: Dict[str, Any]) -> GitRewriteBackend:
    rebase_cfg = config.get("rebase") or {}
    timeout_value = rebase_cfg.get("timeout")
    timeout: Optional[float] = None
    if isinstance(timeout_value, (int, float)) and timeout_value > 0:
        timeout = float(timeout_value)
    return GitRewriteBackend(
        autostash=bool(rebase_cfg.get("autostash", False)),
        abort_on_conflict=bool(rebase_cfg.get("abort_on_conflict", False)),
        timeout=timeout,
    )


@contextmanager
def _reported_errors() -> Iterator[None]:
    """Turn planner and git failures into a message plus exit code 1."""
    try:
        yield
    except (GitError, PlanError, RewriteError, ControllerStateError) as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error


def _open_controller(
    config: Dict[str, Any],
    config_path: Path,
    onto: str,
    *,
    plan_path: Optional[Path],
    autosquash: Optional[bool],
) -> ExecutionController:
    """Load the plan onto ``onto`` and apply the plan file / autosquash choices."""
    repo_root = _resolve_repo_root(config, config_path)
    backend = _build_backend(config)
    controller = asyncio.run(ExecutionController.open(backend, repo_root, onto))

    if plan_path is not None:
        items = load_plan_file(plan_path)
        controller.replace_entries(apply_plan_file(controller.entries, items))

    rebase_cfg = config.get("rebase") or {}
    use_autosquash = bool(rebase_cfg.get("autosquash", False)) if autosquash is None else autosquash
    if use_autosquash:
        controller.apply_autosquash()
    return controller


def _render_plan(controller: ExecutionController) -> None:
    """Render the plan, its findings, the preview and the stats."""
    entries = controller.entries
    typer.echo(f"Rebasing onto {controller.onto} ({len(entries)} commit(s))")
    if not entries:
        typer.echo("No commits to rebase.")
        return

    orphaned = controller.orphaned_ids()
    for position, entry in enumerate(entries, start=1):
        marker = "  ! nothing to fold into" if entry.id in orphaned else ""
        typer.echo(f"{position:>3}. {action_keyword(entry.action):<6} {entry.short_id} {entry.summary}{marker}")
        if entry.reword_text is not None and entry.reword_text != entry.summary:
            typer.echo(f"       -> {entry.reword_text.splitlines()[0] if entry.reword_text else ''}")

    if controller.has_pending_autosquash:
        markers = find_autosquash_markers(entries)
        typer.echo(f"Autosquash: {len(markers)} fixup!/squash! commit(s) detected; use --autosquash to fold them.")

    typer.echo("Preview:")
    for group in controller.preview():
        if group.is_error_marker:
            typer.echo(f"    ! no commit to fold {', '.join(group.folded_ids)} into")
            continue
        folded = f" (+{group.folded_count}: {', '.join(group.folded_ids)})" if group.folded else ""
        flag = " !" if group.errored else ""
        typer.echo(f"    - {group.head.short_id} {group.summary}{folded}{flag}")

    stats = controller.stats()
    typer.echo(f"Stats: removed {stats.removed} | reworded {stats.reworded} | resulting {stats.resulting}")
    if controller.can_submit:
        typer.echo("Plan is ready to run.")
    else:
        typer.echo("Plan has orphaned fold actions; reassign or reorder them before running.")


app = typer.Typer(help=APP_HELP)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Interactive rebase planner."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@app.command()
def init(
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the planner configuration file.",
    ),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration file."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Config already exists at {config_path}; use --force to overwrite.")
        raise typer.Exit(code=1)
    _write_config(config_path, _copy_config_template())
    typer.echo(f"Wrote configuration to {config_path}.")


@app.command()
def show(
    onto: str = typer.Argument(..., help="Upstream revision to rebase onto."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the planner configuration file.",
    ),
    plan: Optional[Path] = typer.Option(None, "--plan", "-p", help="YAML plan file with actions and order."),
    autosquash: Optional[bool] = typer.Option(
        None,
        "--autosquash/--no-autosquash",
        help="Fold fixup!/squash! commits into their targets (defaults to the config value).",
    ),
) -> None:
    """Show the plan, validation findings and the resulting history."""
    config_path = Path(config)
    config_data = load_config(config_path)
    _configure_logging(config_data)
    with _reported_errors():
        controller = _open_controller(config_data, config_path, onto, plan_path=plan, autosquash=autosquash)
        _render_plan(controller)


@app.command()
def todo(
    onto: str = typer.Argument(..., help="Upstream revision to rebase onto."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the planner configuration file.",
    ),
    plan: Optional[Path] = typer.Option(None, "--plan", "-p", help="YAML plan file with actions and order."),
    autosquash: Optional[bool] = typer.Option(
        None,
        "--autosquash/--no-autosquash",
        help="Fold fixup!/squash! commits into their targets (defaults to the config value).",
    ),
) -> None:
    """Print the rebase instruction text for the plan."""
    config_path = Path(config)
    config_data = load_config(config_path)
    _configure_logging(config_data)
    with _reported_errors():
        controller = _open_controller(config_data, config_path, onto, plan_path=plan, autosquash=autosquash)
        text = controller.instructions()
        if text:
            typer.echo(text)


@app.command()
def export(
    onto: str = typer.Argument(..., help="Upstream revision to rebase onto."),
    output: Path = typer.Option(..., "--output", "-o", help="Where to write the plan file."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the planner configuration file.",
    ),
    autosquash: Optional[bool] = typer.Option(
        None,
        "--autosquash/--no-autosquash",
        help="Fold fixup!/squash! commits into their targets (defaults to the config value).",
    ),
) -> None:
    """Write an editable YAML plan file for the commits onto ``ONTO``."""
    config_path = Path(config)
    config_data = load_config(config_path)
    _configure_logging(config_data)
    with _reported_errors():
        controller = _open_controller(config_data, config_path, onto, plan_path=None, autosquash=autosquash)
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(dump_plan_file(controller.entries), encoding="utf-8")
    typer.echo(f"Wrote plan for {len(controller.entries)} commit(s) to {output}.")


@app.command()
def run(
    onto: str = typer.Argument(..., help="Upstream revision to rebase onto."),
    config: str = typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the planner configuration file.",
    ),
    plan: Optional[Path] = typer.Option(None, "--plan", "-p", help="YAML plan file with actions and order."),
    autosquash: Optional[bool] = typer.Option(
        None,
        "--autosquash/--no-autosquash",
        help="Fold fixup!/squash! commits into their targets (defaults to the config value).",
    ),
) -> None:
    """Validate the plan and run the rebase."""
    config_path = Path(config)
    config_data = load_config(config_path)
    _configure_logging(config_data)
    with _reported_errors():
        controller = _open_controller(config_data, config_path, onto, plan_path=plan, autosquash=autosquash)
        if not controller.entries:
            typer.echo("No commits to rebase.")
            return
        if not controller.can_submit:
            for finding in controller.findings():
                entry = controller.entries[finding.position]
                typer.echo(f"! {entry.short_id} {entry.summary}: nothing to fold into")
            typer.echo("Plan has orphaned fold actions; nothing was rewritten.")
            raise typer.Exit(code=1)

        typer.echo(f"Rebasing {len(controller.entries)} commit(s) onto {onto}...")
        succeeded = asyncio.run(controller.submit())

    if not succeeded:
        typer.echo(f"Rebase failed: {controller.error}")
        raise typer.Exit(code=1)
    stats = controller.stats()
    typer.echo(f"Rebase complete: {stats.resulting} commit(s) remain, {stats.removed} removed.")


if __name__ == "__main__":
    app()
