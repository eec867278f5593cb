"""
Product model - catalog entries that own BOMs or are consumed as components.

The BOM engine treats the product catalog as an external collaborator; this
model is the minimal reference data the SQLAlchemy-backed lookup reads.
"""

from sqlalchemy import Boolean, Column, Enum, Index, String

from .base import BaseModel
from .enums import ProductType

# Product types allowed to own a BOM
BOM_OWNER_TYPES = (ProductType.FINISHED_PRODUCT, ProductType.SEMI_FINISHED)


class Product(BaseModel):
    """
    Catalog product.

    Attributes:
        code: Unique product code (used as the cross-version matching key)
        name: Display name
        product_type: Finished product, semi-finished or raw material
        is_active: Whether the product can still be used in new compositions
    """

    __tablename__ = "products"

    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    product_type = Column(
        Enum(ProductType, native_enum=False, length=30),
        nullable=False,
        default=ProductType.RAW_MATERIAL,
    )
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (Index("idx_product_code", "code"),)

    def can_have_bom(self) -> bool:
        """Only finished and semi-finished products may own a BOM."""
        return self.product_type in BOM_OWNER_TYPES
