"""SQLModel ORM tables for delivery job storage."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, String, Text
from sqlmodel import Field, SQLModel


class DeliveryJobRow(SQLModel, table=True):
    __tablename__ = "delivery_jobs"  # type: ignore[bad-override]
    __table_args__ = (
        Index("idx_delivery_jobs_sweep", "environment", "status", "retry_count", "created_at"),
    )

    job_id: str = Field(primary_key=True)
    status: str = Field(index=True)
    retry_count: int = Field(default=0)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    last_retry_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    error_message: str | None = Field(default=None, sa_column=Column(Text))
    environment: str = Field(index=True)
    kind: str = Field(
        default="consultation",
        sa_column=Column(String, nullable=False, server_default="consultation"),
    )
    email: str
    phone: str | None = None
    message: str | None = Field(default=None, sa_column=Column(Text))
    clinic_name: str
    # consultation
    first_name: str | None = None
    last_name: str | None = None
    clinic_id: str | None = None
    selected_procedures_json: str = Field(
        default="[]",
        sa_column=Column(Text, nullable=False, server_default="[]"),
    )
    # clinic listing
    city: str | None = None
    state: str | None = None
    address: str | None = None
    website: str | None = None
    clinic_category: str | None = None
    primary_contact_name: str | None = None
    additional_details: str | None = Field(default=None, sa_column=Column(Text))
    request_type: str | None = None
