"""iacctl Command Line Interface.

Entry point for the iacctl CLI tool.
"""

from pathlib import Path

import typer
from pydantic import ValidationError

from iacctl import __version__
from iacctl.clients import JobClient, LogClient, MigrationTracker
from iacctl.clients.registry import RegistryAdapterManager
from iacctl.contracts import IacctlError, MigrationError, MigrationSummary, OperationCancelled
from iacctl.core import (
    CancelToken,
    ConsoleReporter,
    IacctlSettings,
    cancel_on_signals,
    configure_logging,
    load_migration_config,
    load_settings,
)
from iacctl.engine import MigrationService, PlanRequest, run_plan

INTERRUPTED_MESSAGE = "\n\nInterrupted. Cleaning up..."
EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="iacctl",
    help="iacctl: Remote infrastructure plans and registry migrations.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"iacctl version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """iacctl: Remote infrastructure plans and registry migrations."""
    pass


def _report_validation_error(e: ValidationError) -> None:
    typer.echo("Configuration errors:", err=True)
    for error in e.errors():
        loc = ".".join(str(x) for x in error["loc"])
        typer.echo(f"  - {loc}: {error['msg']}", err=True)


def _load_settings_or_exit(settings: str | None) -> IacctlSettings:
    try:
        return load_settings(Path(settings) if settings else None)
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        _report_validation_error(e)
        raise typer.Exit(1) from None


def _exit_for_cancel(token: CancelToken, e: OperationCancelled) -> typer.Exit:
    if token.reason == "interrupted":
        return typer.Exit(EXIT_INTERRUPTED)
    typer.echo(f"Error: {e}", err=True)
    return typer.Exit(1)


@app.command()
def plan(
    workspace_id: str = typer.Option(
        ...,
        "--workspace-id",
        "-w",
        help="Workspace to plan.",
    ),
    org_id: str | None = typer.Option(
        None,
        "--org-id",
        help="Organisation identifier (defaults to settings).",
    ),
    project_id: str | None = typer.Option(
        None,
        "--project-id",
        help="Project identifier (defaults to settings).",
    ),
    target: list[str] | None = typer.Option(
        None,
        "--target",
        help="Resource address to target. Repeatable.",
    ),
    replace: list[str] | None = typer.Option(
        None,
        "--replace",
        help="Resource address to replace. Repeatable.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the confirmation prompt.",
    ),
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed output.",
    ),
) -> None:
    """Upload the current directory and run a remote plan, streaming its logs."""
    configure_logging(verbose=verbose)
    config = _load_settings_or_exit(settings)

    org = org_id or config.org_id
    project = project_id or config.project_id
    if not org or not project:
        typer.echo("Error: --org-id and --project-id are required (or set them in settings)", err=True)
        raise typer.Exit(1)

    request = PlanRequest(
        org=org,
        project=project,
        workspace=workspace_id,
        targets=tuple(target or ()),
        replacements=tuple(replace or ()),
        auto_approve=yes,
    )

    token = CancelToken()
    jobs = JobClient.from_settings(config)
    logs = LogClient.from_settings(config)
    try:
        with cancel_on_signals(token, on_signal=lambda: typer.echo(INTERRUPTED_MESSAGE)):
            run_plan(
                request,
                jobs=jobs,
                logs=logs,
                cancel=token,
                polling=config.polling,
                reporter=ConsoleReporter(),
            )
    except OperationCancelled as e:
        raise _exit_for_cancel(token, e) from None
    except IacctlError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        jobs.close()
        logs.close()


# === Registry commands ===

registry_app = typer.Typer(help="Artifact registry commands.")
app.add_typer(registry_app, name="registry")


def _print_summary(summary: MigrationSummary) -> None:
    typer.echo(f"\nMigration finished: {summary.total_artifacts} artifacts")
    for result in summary.mappings:
        state = "ok" if result.succeeded else f"failed: {result.error}"
        typer.echo(
            f"  {result.source_registry} -> {result.destination_registry} "
            f"({result.total} artifacts, id {result.migration_id or '-'}): {state}"
        )
        for ref in result.failed_artifacts:
            typer.echo(f"    - {ref}")
    failed = summary.failed_mappings
    if failed:
        typer.echo(f"{len(failed)} of {len(summary.mappings)} mappings had failures", err=True)


@registry_app.command("migrate")
def migrate(
    config_path: str = typer.Option(
        ...,
        "--config",
        "-c",
        help="Path to the migration plan YAML file.",
    ),
    pkg_url: str | None = typer.Option(
        None,
        "--pkg-url",
        help="Package upload base URL (overrides settings).",
    ),
    concurrency: int | None = typer.Option(
        None,
        "--concurrency",
        min=1,
        help="Artifacts migrated in parallel (overrides the plan).",
    ),
    overwrite: bool = typer.Option(
        False,
        "--overwrite",
        help="Upload artifacts that already exist in the destination.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Report what would be migrated without moving anything.",
    ),
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show detailed output.",
    ),
) -> None:
    """Migrate artifacts between registries as described by a plan file."""
    configure_logging(verbose=verbose)
    config = _load_settings_or_exit(settings)
    if pkg_url:
        config = config.model_copy(update={"pkg_url": pkg_url.rstrip("/")})

    try:
        plan_config = load_migration_config(Path(config_path))
    except FileNotFoundError:
        typer.echo(f"Error: Migration config not found: {config_path}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        _report_validation_error(e)
        raise typer.Exit(1) from None
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    options: dict[str, object] = {}
    if concurrency is not None:
        options["concurrency"] = concurrency
    if dry_run:
        options["dry_run"] = True
    plan_config = plan_config.model_copy(
        update={
            "migration": plan_config.migration.model_copy(update=options),
            "overwrite": plan_config.overwrite or overwrite,
        }
    )

    manager = RegistryAdapterManager()
    manager.register_builtin_adapters()
    try:
        source = manager.create_source(plan_config.source, config)
        destination = manager.create_destination(plan_config.destination, config)
    except IacctlError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    tracker = MigrationTracker.from_settings(
        config, api_key=plan_config.destination.credentials.token or None
    )
    token = CancelToken()
    reporter = ConsoleReporter()
    reporter.start("Starting migration")
    try:
        with cancel_on_signals(token, on_signal=lambda: typer.echo(INTERRUPTED_MESSAGE)):
            summary = MigrationService(
                plan_config,
                source,
                destination,
                tracker,
                token,
                account_id=config.account_id or None,
                reporter=reporter,
            ).run()
    except OperationCancelled as e:
        raise _exit_for_cancel(token, e) from None
    except MigrationError as e:
        typer.echo(f"Error: {e}", err=True)
        for ref in e.failed:
            typer.echo(f"  - {ref}", err=True)
        raise typer.Exit(1) from None
    except IacctlError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        source.close()
        destination.close()
        tracker.close()

    _print_summary(summary)


@registry_app.command("status")
def status(
    migration_id: str = typer.Option(
        ...,
        "--id",
        help="Migration id printed by 'registry migrate'.",
    ),
    poll: float = typer.Option(
        0,
        "--poll",
        min=0,
        help="Refresh every N seconds until the migration settles (0 = once).",
    ),
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Show per-status artifact counts of a tracked migration."""
    configure_logging()
    config = _load_settings_or_exit(settings)
    tracker = MigrationTracker.from_settings(config)
    token = CancelToken()
    try:
        with cancel_on_signals(token):
            while True:
                current = tracker.get_migration_status(migration_id)
                counters = current.status
                typer.echo(
                    f"{current.id or migration_id} [{current.registry}] "
                    f"total={current.total_images} "
                    f"not_started={counters.not_started} started={counters.started} "
                    f"completed={counters.completed} failed={counters.failed} "
                    f"skipped={counters.skipped}"
                )
                settled = counters.completed + counters.failed + counters.skipped
                if poll <= 0 or settled >= current.total_images:
                    return
                if token.wait(poll):
                    raise typer.Exit(EXIT_INTERRUPTED)
    except IacctlError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None
    finally:
        tracker.close()


if __name__ == "__main__":
    app()
