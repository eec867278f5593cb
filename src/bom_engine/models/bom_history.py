"""
BOMHistory model - append-only audit records for BOM changes.

Each record captures the target BOM, the action, the affected entity and a
list of (field, old value, new value) changes. Records are never updated or
deleted once written.
"""

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, DateTime, Enum, Index, String, Text

from .base import BaseModel
from .enums import HistoryAction, HistoryTargetType

# Fields whose change is always business-critical
CRITICAL_HISTORY_FIELDS = ("quantity", "unit_cost", "component_id", "is_active", "version")

ACTION_LABELS = {
    HistoryAction.ADD_ITEM: "Component added",
    HistoryAction.UPDATE_ITEM: "Component updated",
    HistoryAction.DELETE_ITEM: "Component deleted",
    HistoryAction.COPY_BOM: "BOM copied",
    HistoryAction.COMPARE_BOM: "BOM compared",
}


def _to_json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


@dataclass(frozen=True)
class ChangedField:
    """
    One field-level change captured by an audit record.

    Attributes:
        field_name: Name of the changed field
        old_value: Value before the change (None for creations)
        new_value: Value after the change
    """

    field_name: str
    old_value: Any = None
    new_value: Any = None

    def __post_init__(self) -> None:
        if not self.field_name or not self.field_name.strip():
            raise ValueError("field_name is required")

    @property
    def is_critical(self) -> bool:
        return self.field_name in CRITICAL_HISTORY_FIELDS

    def describe(self) -> str:
        """Human-readable description of the change."""
        if self.old_value is None:
            return f"{self.field_name} set: {self.new_value}"
        if self.new_value is None:
            return f"{self.field_name} cleared: {self.old_value}"
        return f"{self.field_name}: {self.old_value} -> {self.new_value}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field_name": self.field_name,
            "old_value": _to_json_value(self.old_value),
            "new_value": _to_json_value(self.new_value),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangedField":
        return cls(data["field_name"], data.get("old_value"), data.get("new_value"))


class BOMHistory(BaseModel):
    """
    Audit record for a BOM change.

    Attributes:
        bom_id: Target BOM
        action: HistoryAction performed
        target_type: Entity kind the record refers to
        target_id: Affected entity id
        changed_fields: JSON list of ChangedField dicts
        user_id / user_name: Actor
        timestamp: When the change happened
        reason: Free text
    """

    __tablename__ = "bom_history"

    bom_id = Column(String(64), nullable=False, index=True)
    action = Column(Enum(HistoryAction, native_enum=False, length=30), nullable=False)
    target_type = Column(Enum(HistoryTargetType, native_enum=False, length=30), nullable=False)
    target_id = Column(String(200), nullable=False)
    changed_fields = Column(JSON, nullable=False, default=list)
    user_id = Column(String(64), nullable=False)
    user_name = Column(String(200), nullable=False)
    timestamp = Column(DateTime, nullable=False)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        Index("idx_bom_history_bom_time", "bom_id", "timestamp"),
        Index("idx_bom_history_target", "target_id"),
    )

    @classmethod
    def record(
        cls,
        record_id: str,
        bom_id: str,
        action: HistoryAction,
        target_type: HistoryTargetType,
        target_id: str,
        changes: List[ChangedField],
        user_id: str,
        timestamp: datetime,
        reason: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> "BOMHistory":
        """Build an audit record from ChangedField values."""
        return cls(
            id=record_id,
            bom_id=bom_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            changed_fields=[change.to_dict() for change in changes],
            user_id=user_id,
            user_name=user_name or user_id,
            timestamp=timestamp,
            reason=reason,
        )

    @property
    def changes(self) -> List[ChangedField]:
        return [ChangedField.from_dict(data) for data in (self.changed_fields or [])]

    def field_change(self, field_name: str) -> Optional[ChangedField]:
        for change in self.changes:
            if change.field_name == field_name:
                return change
        return None

    def is_critical_change(self) -> bool:
        """Copies (new BOMs) and deletions are always critical; otherwise any critical field."""
        if self.action in (HistoryAction.COPY_BOM, HistoryAction.DELETE_ITEM):
            return True
        return any(change.is_critical for change in self.changes)

    def change_summary(self) -> str:
        summary = ACTION_LABELS.get(self.action, str(self.action))
        changes = self.changes
        if changes:
            summary += " (" + ", ".join(change.describe() for change in changes) + ")"
        return summary
