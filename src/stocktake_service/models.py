"""Database models for the stock-take engine."""
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; they are stored as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch_ms(value: datetime) -> int:
    return int(as_utc(value).timestamp() * 1000)


def from_epoch_ms(value: int | float) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def new_record_id() -> str:
    return uuid.uuid4().hex


class ScanStatus(str, enum.Enum):
    OK = "OK"
    NOT_FOUND = "Not Found"
    DUPLICATED = "Duplicated"
    CHECKED = "Checked"


# Attribute names shared by MasterItem and the InventoryRecord snapshot.
SNAPSHOT_FIELDS = (
    "vendor_sn",
    "project",
    "item_class",
    "location",
    "vendor",
    "vendor_pn",
    "customer_pn",
    "description",
)


class MasterItem(Base):
    __tablename__ = "master_items"

    part_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    vendor_sn: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    project: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    item_class: Mapped[str] = mapped_column("class", String(128), default="", nullable=False)
    location: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    vendor: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    vendor_pn: Mapped[str] = mapped_column(String(255), default="", nullable=False, index=True)
    customer_pn: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False, index=True)

    def snapshot(self) -> dict[str, str]:
        return {name: getattr(self, name) or "" for name in SNAPSHOT_FIELDS}


class InventoryRecord(Base):
    __tablename__ = "inventory_records"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_record_id)
    part_id: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    inventory_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    scanned_by: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    vendor_sn: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    project: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    item_class: Mapped[str] = mapped_column("class", String(128), default="", nullable=False)
    location: Mapped[str] = mapped_column(String(128), default="", nullable=False)
    vendor: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    vendor_pn: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    customer_pn: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    # Higher sequence sorts first; scans prepend, merges append.
    sequence: Mapped[int] = mapped_column(Integer, nullable=False, index=True)


class Operator(Base):
    __tablename__ = "operators"

    name: Mapped[str] = mapped_column(String(128), primary_key=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)


class AppState(Base):
    __tablename__ = "app_state"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(Text, default="", nullable=False)


__all__ = [
    "ScanStatus",
    "SNAPSHOT_FIELDS",
    "MasterItem",
    "InventoryRecord",
    "Operator",
    "AppState",
    "utcnow",
    "as_utc",
    "to_epoch_ms",
    "from_epoch_ms",
    "new_record_id",
]
