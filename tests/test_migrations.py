from pathlib import Path

import allure
from sqlalchemy import inspect, text

from form_relay.delivery.repository import DeliveryJobRepository

pytestmark = [
    allure.epic("Delivery Engine"),
    allure.feature("Job Store"),
]


def test_alembic_schema_is_initialized_to_head(tmp_path: Path) -> None:
    repository = DeliveryJobRepository(tmp_path / "migrations.db")
    repository.init_schema()

    with repository.engine.connect() as connection:
        version = connection.execute(
            text("SELECT version_num FROM alembic_version LIMIT 1"),
        ).scalar_one()
    assert version == "20261018_0002"

    inspector = inspect(repository.engine)
    assert "delivery_jobs" in inspector.get_table_names()
    columns = {column["name"] for column in inspector.get_columns("delivery_jobs")}
    assert {
        "job_id",
        "status",
        "retry_count",
        "created_at",
        "last_retry_at",
        "error_message",
        "environment",
        "selected_procedures_json",
        "kind",
        "city",
        "state",
        "address",
        "request_type",
    } <= columns
    indexes = {index["name"] for index in inspector.get_indexes("delivery_jobs")}
    assert {
        "ix_delivery_jobs_status",
        "ix_delivery_jobs_environment",
        "idx_delivery_jobs_sweep",
    } <= indexes
    repository.close()


def test_init_schema_is_idempotent(tmp_path: Path) -> None:
    db_path = tmp_path / "twice.db"
    first = DeliveryJobRepository(db_path)
    first.init_schema()
    first.close()

    second = DeliveryJobRepository(db_path)
    second.init_schema()
    with second.engine.connect() as connection:
        versions = connection.execute(text("SELECT version_num FROM alembic_version")).all()
    assert [row[0] for row in versions] == ["20261018_0002"]
    second.close()
