"""Identifier generation for BOM entities.

Identifiers are opaque strings so that BOMs, items and audit records can be
referenced by id in an index rather than through live object links.

Usage:
    from bom_engine.utils.id_utils import generate_id

    item_id = generate_id("BOMITEM")  # "BOMITEM-3f0c9a..."
"""

import uuid


def generate_id(prefix: str) -> str:
    """
    Generate a new unique identifier with a readable prefix.

    Args:
        prefix: Entity prefix (e.g., "BOM", "BOMITEM", "BOMHIST")

    Returns:
        Identifier string like "BOM-9b2e4c1d0a6f4e2f8d7a1b3c5e6f7a8b"
    """
    return f"{prefix}-{uuid.uuid4().hex}"
