"""CLI entrypoint for form-relay."""

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import IO

import rich_click as click

from form_relay import __version__
from form_relay.delivery.controllers import (
    DeliveryCliController,
    InspectJobCommand,
    ListJobsCommand,
    ReprocessCommand,
    StatsCommand,
    SubmitCommand,
    WorkerCommand,
)
from form_relay.delivery.errors import JobNotFoundError, StorageError, ValidationError
from form_relay.delivery.models import DeliveryStatus, RequestKind

click.rich_click.USE_MARKDOWN = True
DELIVERY_CONTROLLER = DeliveryCliController()

EXIT_VALIDATION_REJECTED = 65
EXIT_NOT_FOUND = 66
EXIT_STORAGE_ERROR = 74


class BoundaryError(click.ClickException):
    """CLI error carrying a boundary-specific exit code."""

    def __init__(self, message: str, *, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code


@click.group()
@click.version_option(version=__version__, prog_name="form-relay")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Root logging level.",
)
def form_relay(log_level: str) -> None:
    """Form submission notification relay."""

    logging.basicConfig(
        level=log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@form_relay.command("submit")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--payload-file",
    type=click.File("r", encoding="utf-8"),
    default="-",
    show_default=True,
    help="JSON form payload (camelCase fields). `-` reads stdin.",
)
@click.option(
    "--kind",
    type=click.Choice([kind.value for kind in RequestKind], case_sensitive=False),
    default=RequestKind.CONSULTATION.value,
    show_default=True,
    help="Form that produced the payload.",
)
def submit(db_path: Path | None, payload_file: IO[str], kind: str) -> None:
    """Accept one form submission and attempt delivery immediately."""

    def _run() -> list[str]:
        try:
            payload = json.load(payload_file)
        except json.JSONDecodeError as error:
            raise ValidationError(
                "Payload is not valid JSON",
                details={"body": str(error)},
            ) from error
        if not isinstance(payload, dict):
            raise ValidationError(
                "Validation failed",
                details={"body": "Payload must be an object"},
            )
        return DELIVERY_CONTROLLER.submit(
            SubmitCommand(db_path=db_path, payload=payload, kind=RequestKind(kind.lower())),
        )

    _emit_lines(_handle_boundary_errors(_run))


@form_relay.command("reprocess")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("job_id")
def reprocess(db_path: Path | None, job_id: str) -> None:
    """Reset a job (any state) and attempt delivery once, out of band."""

    _emit_lines(
        _handle_boundary_errors(
            lambda: DELIVERY_CONTROLLER.reprocess(ReprocessCommand(db_path=db_path, job_id=job_id)),
        ),
    )


@form_relay.command("worker")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option("--once", is_flag=True, default=False, help="Run a single sweep and exit.")
@click.option(
    "--max-sweeps",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many sweeps (default: run until SIGINT/SIGTERM).",
)
@click.option(
    "--interval-seconds",
    type=click.FloatRange(min=0.0, min_open=True),
    default=None,
    help="Sweep interval. Defaults to FORM_RELAY_SWEEP_INTERVAL_SECONDS.",
)
def worker(
    db_path: Path | None,
    once: bool,
    max_sweeps: int | None,
    interval_seconds: float | None,
) -> None:
    """Run the retry sweep: once at startup, then on a fixed interval."""

    _emit_lines(
        _handle_boundary_errors(
            lambda: DELIVERY_CONTROLLER.run_worker(
                WorkerCommand(
                    db_path=db_path,
                    once=once,
                    max_sweeps=max_sweeps,
                    interval_seconds=interval_seconds,
                ),
            ),
        ),
    )


@form_relay.group()
def jobs() -> None:
    """Delivery job inspection commands."""


@jobs.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.option(
    "--status",
    type=click.Choice([status.value for status in DeliveryStatus], case_sensitive=False),
    default=None,
    help="Only show jobs in this status.",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
    help="Max number of jobs to print.",
)
def jobs_list(db_path: Path | None, status: str | None, limit: int) -> None:
    """List recent jobs of the current environment, newest first."""

    _emit_lines(
        _handle_boundary_errors(
            lambda: DELIVERY_CONTROLLER.list_jobs(
                ListJobsCommand(db_path=db_path, status=status, limit=limit),
            ),
        ),
    )


@jobs.command("inspect")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
@click.argument("job_id")
def jobs_inspect(db_path: Path | None, job_id: str) -> None:
    """Show one job with its payload and last diagnostic."""

    _emit_lines(
        _handle_boundary_errors(
            lambda: DELIVERY_CONTROLLER.inspect_job(
                InspectJobCommand(db_path=db_path, job_id=job_id),
            ),
        ),
    )


@jobs.command("stats")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help="SQLite DB path.")
def jobs_stats(db_path: Path | None) -> None:
    """Count jobs per status in the current environment."""

    _emit_lines(
        _handle_boundary_errors(lambda: DELIVERY_CONTROLLER.stats(StatsCommand(db_path=db_path))),
    )


def _handle_boundary_errors(action: Callable[[], list[str]]) -> list[str]:
    try:
        return action()
    except ValidationError as error:
        details = "; ".join(f"{field}: {message}" for field, message in error.details.items())
        message = f"{error} ({details})" if details else str(error)
        raise BoundaryError(message, exit_code=EXIT_VALIDATION_REJECTED) from error
    except JobNotFoundError as error:
        raise BoundaryError(str(error), exit_code=EXIT_NOT_FOUND) from error
    except StorageError as error:
        raise BoundaryError(str(error), exit_code=EXIT_STORAGE_ERROR) from error
    except ValueError as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    form_relay()
