"""Utilities package for the BOM engine."""

from .datetime_utils import utc_now
from .id_utils import generate_id

__all__ = [
    "utc_now",
    "generate_id",
]
