"""Pydantic schemas used by the API and the backup document."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import (
    SNAPSHOT_FIELDS,
    InventoryRecord,
    ScanStatus,
    from_epoch_ms,
    new_record_id,
    to_epoch_ms,
)


class CatalogFields(BaseModel):
    """Descriptive fields shared by catalog items and record snapshots.

    Serialized with the column names of the catalog spreadsheet.
    """

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    vendor_sn: str = Field("", alias="VendorSN")
    project: str = Field("", alias="Project")
    item_class: str = Field("", alias="Class")
    location: str = Field("", alias="Location")
    vendor: str = Field("", alias="Vendor")
    vendor_pn: str = Field("", alias="VendorPN")
    customer_pn: str = Field("", alias="CustomerPN")
    description: str = Field("", alias="Description")

    @field_validator(*SNAPSHOT_FIELDS, mode="before")
    @classmethod
    def _blank_for_none(cls, value: object) -> object:
        return "" if value is None else value


class MasterItemOut(CatalogFields):
    part_id: str = Field(..., alias="PartID")


class RelatedItemOut(MasterItemOut):
    scanned: bool = False


class RecordDocument(CatalogFields):
    """One inventory record as exchanged with clients and stored in backups."""

    id: str = Field(default_factory=new_record_id)
    inventory_date: int = Field(..., alias="InventoryDate", description="Epoch milliseconds.")
    status: ScanStatus = Field(..., alias="Status")
    scanned_by: str = Field("", alias="scannedBy")
    part_id: str = Field(..., alias="PartID", min_length=1)

    @field_validator("inventory_date", mode="before")
    @classmethod
    def _epoch_ms(cls, value: object) -> object:
        if isinstance(value, datetime):
            return to_epoch_ms(value)
        if isinstance(value, float):
            return int(value)
        return value

    @field_validator("part_id", mode="after")
    @classmethod
    def _strip_part_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("PartID must not be blank")
        return value

    def to_model(self) -> InventoryRecord:
        return InventoryRecord(
            id=self.id,
            inventory_date=from_epoch_ms(self.inventory_date),
            status=self.status.value,
            scanned_by=self.scanned_by,
            part_id=self.part_id,
            **{name: getattr(self, name) for name in SNAPSHOT_FIELDS},
        )


class ScanRequest(BaseModel):
    part_id: str = Field(..., description="Raw scanned or typed identifier.")
    operator: str | None = Field(None, description="Defaults to the selected operator.")


class ScanResponse(BaseModel):
    outcome: ScanStatus
    created: bool
    record: RecordDocument


class RecordIds(BaseModel):
    ids: list[str] = Field(default_factory=list)


class StatusUpdate(RecordIds):
    status: ScanStatus = ScanStatus.CHECKED


class AffectedCount(BaseModel):
    affected: int


class CatalogCount(BaseModel):
    count: int


class IngestionResult(BaseModel):
    processed: int
    skipped: int
    batches: int
    count: int


class MergeResult(BaseModel):
    added: int
    skipped: int


class BackupDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    version: str
    timestamp: int
    users: list[str]
    records: list[RecordDocument]
    master_count: int = Field(..., alias="masterCount")


class RestorePayload(BaseModel):
    """Restore input; absent sections leave the matching state untouched."""

    users: list[str] | None = None
    records: list[RecordDocument] | None = None


class RestoreResult(BaseModel):
    users: int | None = None
    records: int | None = None


class ProgressGroup(BaseModel):
    group: str
    target: int
    counted: int
    percent: int


class ProgressReport(BaseModel):
    total: ProgressGroup
    groups: list[ProgressGroup]


class OperatorName(BaseModel):
    name: str = Field(..., min_length=1)


class SessionState(BaseModel):
    authenticated: bool
    current_operator: str | None
    operators: list[str]


class UnlockRequest(BaseModel):
    password: str


class PasswordChange(BaseModel):
    old_password: str
    new_password: str = Field(..., min_length=4)


class HealthStatus(BaseModel):
    status: Literal["ok"] = "ok"
    environment: str


__all__ = [
    "MasterItemOut",
    "RelatedItemOut",
    "RecordDocument",
    "ScanRequest",
    "ScanResponse",
    "RecordIds",
    "StatusUpdate",
    "AffectedCount",
    "CatalogCount",
    "IngestionResult",
    "MergeResult",
    "BackupDocument",
    "RestorePayload",
    "RestoreResult",
    "ProgressGroup",
    "ProgressReport",
    "OperatorName",
    "SessionState",
    "UnlockRequest",
    "PasswordChange",
    "HealthStatus",
]
