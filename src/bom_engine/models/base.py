"""
Declarative base shared by every BOM engine table.

Each row carries an opaque string id ("BOM-...", "BOMITEM-...") assigned by
the services, plus UTC creation and modification stamps.
"""

import uuid as uuid_lib
from typing import Any, Dict

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base

from bom_engine.utils.datetime_utils import utc_now

Base = declarative_base()


def _default_id() -> str:
    return uuid_lib.uuid4().hex


class BaseModel(Base):
    """
    Abstract parent of the engine's models.

    Subclasses get:
    - id: String primary key; a random hex id when the caller gives none
    - created_at / updated_at: UTC stamps maintained on insert and update
    - column_values(): plain mapping used to derive modified copies
    """

    __abstract__ = True

    id = Column(String(64), primary_key=True, default=_default_id)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def column_values(self) -> Dict[str, Any]:
        """Mapped column values keyed by column name, unconverted."""
        return {column.name: getattr(self, column.name) for column in self.__table__.columns}

    def __repr__(self) -> str:
        parts = [f"id='{self.id}'"] if getattr(self, "id", None) is not None else []
        code = getattr(self, "code", None)
        if code is not None:
            parts.append(f"code='{code}'")
        return f"{self.__class__.__name__}({', '.join(parts)})"
