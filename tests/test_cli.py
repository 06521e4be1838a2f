from __future__ import annotations

import json
import re
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from form_relay.main import form_relay

pytestmark = [
    allure.epic("Operations"),
    allure.feature("Command Line"),
]

_JOB_ID = re.compile(r"job_id=([0-9a-f-]{36})")


@pytest.fixture(autouse=True)
def _echo_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FORM_RELAY_NOTIFIER_BACKEND", "echo")
    monkeypatch.setenv("FORM_RELAY_ENVIRONMENT", "cli-test")
    monkeypatch.delenv("FORM_RELAY_MAX_RETRIES", raising=False)
    monkeypatch.delenv("FORM_RELAY_BACKOFF_MINUTES", raising=False)


def _submit(runner: CliRunner, db_path: Path, payload: dict[str, object]) -> str:
    result = runner.invoke(
        form_relay,
        ["submit", "--db-path", str(db_path)],
        input=json.dumps(payload),
    )
    assert result.exit_code == 0, result.output
    match = _JOB_ID.search(result.output)
    assert match is not None
    return match.group(1)


def test_submit_list_inspect_and_stats(
    tmp_path: Path,
    raw_payload: dict[str, object],
) -> None:
    db_path = tmp_path / "cli.db"
    runner = CliRunner()

    submitted = runner.invoke(
        form_relay,
        ["submit", "--db-path", str(db_path)],
        input=json.dumps(raw_payload),
    )
    assert submitted.exit_code == 0, submitted.output
    assert "Request received:" in submitted.output
    assert "status=sent" in submitted.output
    match = _JOB_ID.search(submitted.output)
    assert match is not None
    job_id = match.group(1)

    listed = runner.invoke(form_relay, ["jobs", "list", "--db-path", str(db_path)])
    assert listed.exit_code == 0, listed.output
    assert "Jobs: 1 (environment=cli-test)" in listed.output
    assert f"{job_id} status=sent retry_count=0" in listed.output

    inspected = runner.invoke(form_relay, ["jobs", "inspect", "--db-path", str(db_path), job_id])
    assert inspected.exit_code == 0, inspected.output
    assert f"Job: {job_id}" in inspected.output
    assert "Contact: Ada Lovelace <ada@example.com>" in inspected.output
    assert "Procedures: 2" in inspected.output

    stats = runner.invoke(form_relay, ["jobs", "stats", "--db-path", str(db_path)])
    assert stats.exit_code == 0, stats.output
    assert "  sent: 1" in stats.output
    assert "  total: 1" in stats.output


def test_submit_reads_payload_file(tmp_path: Path, raw_payload: dict[str, object]) -> None:
    payload_file = tmp_path / "request.json"
    payload_file.write_text(json.dumps(raw_payload), encoding="utf-8")

    result = CliRunner().invoke(
        form_relay,
        ["submit", "--db-path", str(tmp_path / "cli.db"), "--payload-file", str(payload_file)],
    )

    assert result.exit_code == 0, result.output
    assert "status=sent" in result.output


def test_invalid_payload_exits_with_validation_code(
    tmp_path: Path,
    raw_payload: dict[str, object],
) -> None:
    db_path = tmp_path / "cli.db"
    raw_payload["email"] = "broken"
    runner = CliRunner()

    rejected = runner.invoke(
        form_relay,
        ["submit", "--db-path", str(db_path)],
        input=json.dumps(raw_payload),
    )
    not_json = runner.invoke(form_relay, ["submit", "--db-path", str(db_path)], input="{oops")

    assert rejected.exit_code == 65
    assert "email: Invalid email format" in rejected.output
    assert not_json.exit_code == 65
    assert "Payload is not valid JSON" in not_json.output

    listed = runner.invoke(form_relay, ["jobs", "list", "--db-path", str(db_path)])
    assert "Jobs: 0" in listed.output


def test_reprocess_resets_and_redelivers(
    tmp_path: Path,
    raw_payload: dict[str, object],
) -> None:
    db_path = tmp_path / "cli.db"
    runner = CliRunner()
    job_id = _submit(runner, db_path, raw_payload)

    result = runner.invoke(form_relay, ["reprocess", "--db-path", str(db_path), job_id])

    assert result.exit_code == 0, result.output
    assert (
        f"Job reprocessed: job_id={job_id} outcome=sent status=sent retry_count=0" in result.output
    )


def test_unknown_and_malformed_job_ids(tmp_path: Path) -> None:
    db_path = tmp_path / "cli.db"
    runner = CliRunner()
    missing = "3b241101-e2bb-4255-8caf-4136c566a962"

    reprocess_missing = runner.invoke(form_relay, ["reprocess", "--db-path", str(db_path), missing])
    inspect_missing = runner.invoke(
        form_relay,
        ["jobs", "inspect", "--db-path", str(db_path), missing],
    )
    malformed = runner.invoke(form_relay, ["reprocess", "--db-path", str(db_path), "job-1"])

    assert reprocess_missing.exit_code == 66
    assert f"Delivery job not found: {missing}" in reprocess_missing.output
    assert inspect_missing.exit_code == 66
    assert malformed.exit_code == 65
    assert "Invalid request ID format" in malformed.output


def test_worker_once_reports_sweep_summary(
    tmp_path: Path,
    raw_payload: dict[str, object],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    db_path = tmp_path / "cli.db"
    runner = CliRunner()
    _submit(runner, db_path, raw_payload)
    monkeypatch.setenv("FORM_RELAY_ENVIRONMENT", "other")

    result = runner.invoke(form_relay, ["worker", "--once", "--db-path", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Worker summary: environment=other sweeps=1 eligible=0 sent=0" in result.output


def test_sendgrid_backend_without_key_is_a_usage_error(
    tmp_path: Path,
    raw_payload: dict[str, object],
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setenv("FORM_RELAY_NOTIFIER_BACKEND", "sendgrid")
    monkeypatch.delenv("FORM_RELAY_SENDGRID_API_KEY", raising=False)

    result = CliRunner().invoke(
        form_relay,
        ["submit", "--db-path", str(tmp_path / "cli.db")],
        input=json.dumps(raw_payload),
    )

    assert result.exit_code == 1
    assert "FORM_RELAY_SENDGRID_API_KEY is required" in result.output


def test_clinic_listing_submission_and_inspect(
    tmp_path: Path,
    raw_listing_payload: dict[str, object],
) -> None:
    db_path = tmp_path / "cli.db"
    runner = CliRunner()

    submitted = runner.invoke(
        form_relay,
        ["submit", "--db-path", str(db_path), "--kind", "clinic_listing"],
        input=json.dumps(raw_listing_payload),
    )
    assert submitted.exit_code == 0, submitted.output
    assert "status=sent" in submitted.output
    match = _JOB_ID.search(submitted.output)
    assert match is not None
    job_id = match.group(1)

    listed = runner.invoke(form_relay, ["jobs", "list", "--db-path", str(db_path)])
    assert "kind=clinic_listing clinic=Harbor Dermatology" in listed.output

    inspected = runner.invoke(form_relay, ["jobs", "inspect", "--db-path", str(db_path), job_id])
    assert inspected.exit_code == 0, inspected.output
    assert "Kind: clinic_listing" in inspected.output
    assert "Contact: Mary Shelley <owner@harbor.example>" in inspected.output
    assert "Clinic: Harbor Dermatology (12 Harbor Way, Portland, OR)" in inspected.output
    assert "Request type: new" in inspected.output


def test_clinic_listing_validation_rejects_missing_location(
    tmp_path: Path,
    raw_listing_payload: dict[str, object],
) -> None:
    del raw_listing_payload["city"]

    result = CliRunner().invoke(
        form_relay,
        ["submit", "--db-path", str(tmp_path / "cli.db"), "--kind", "clinic_listing"],
        input=json.dumps(raw_listing_payload),
    )

    assert result.exit_code == 65
    assert "city: City is required" in result.output
