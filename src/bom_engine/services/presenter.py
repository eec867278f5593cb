"""
Display-label lookup for BOM values.

The engine never hard-codes labels in its results; it asks a BOMPresenter.
"""

from abc import ABC, abstractmethod
from typing import Dict

from ..models.enums import ComponentType

COMPONENT_TYPE_LABELS: Dict[ComponentType, str] = {
    ComponentType.RAW_MATERIAL: "Raw Material",
    ComponentType.SEMI_FINISHED: "Semi-Finished",
    ComponentType.PURCHASED_PART: "Purchased Part",
    ComponentType.SUB_ASSEMBLY: "Sub-Assembly",
    ComponentType.CONSUMABLE: "Consumable",
}

FIELD_LABELS: Dict[str, str] = {
    "quantity": "Quantity",
    "unit_cost": "Unit Cost",
    "scrap_rate": "Scrap Rate",
    "is_optional": "Optional",
    "position": "Position",
    "process_step": "Process Step",
    "remarks": "Remarks",
    "effective_date": "Effective Date",
    "expiry_date": "Expiry Date",
}


class BOMPresenter(ABC):
    """Maps engine values to human-readable labels."""

    @abstractmethod
    def component_type_label(self, component_type: ComponentType) -> str:
        pass

    @abstractmethod
    def field_label(self, field_name: str) -> str:
        pass


class DefaultBOMPresenter(BOMPresenter):
    """English labels."""

    def component_type_label(self, component_type: ComponentType) -> str:
        try:
            return COMPONENT_TYPE_LABELS[ComponentType(component_type)]
        except (KeyError, ValueError):
            return str(component_type)

    def field_label(self, field_name: str) -> str:
        return FIELD_LABELS.get(field_name, field_name.replace("_", " ").title())
