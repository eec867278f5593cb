"""
BOM persistence contracts and their SQLAlchemy implementations.

The engine's services depend only on the abstract stores defined here:
- BOMStore: BOM headers (items loaded on demand into BOM.items)
- BOMItemStore: BOM item nodes, addressed by id, deleted logically
- BOMHistoryStore: append-only audit records
- ProductLookup: product catalog existence/activity/ownership checks

The SQL* classes implement the contracts on top of session_scope(). Every
method accepts an optional session so callers can group several calls in
one transaction; without one, each call runs in its own transaction.
Database failures are wrapped in DatabaseError with the original error
chained.
"""

import logging
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import BOM, BOMHistory, BOMItem, Product
from ..utils.datetime_utils import ensure_utc, utc_now
from .database import session_scope
from .exceptions import DatabaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# Contracts
# ============================================================================


class BOMStore(ABC):
    """Read/write access to BOM headers."""

    @abstractmethod
    def find_by_id(self, bom_id: str, include_items: bool = True) -> Optional[BOM]:
        """Return the BOM (with its non-deleted items when requested) or None."""

    @abstractmethod
    def find_by_product_id_and_version(self, product_id: str, version: str) -> Optional[BOM]:
        pass

    @abstractmethod
    def find_active_by_product_id(self, product_id: str) -> Optional[BOM]:
        """Return the product's currently active BOM with items, or None."""

    @abstractmethod
    def find_by_product_id(self, product_id: str) -> List[BOM]:
        pass

    @abstractmethod
    def save(self, bom: BOM) -> BOM:
        pass

    @abstractmethod
    def delete(self, bom_id: str, deleted_by: str) -> bool:
        """Logically delete (deactivate) a BOM."""


class BOMItemStore(ABC):
    """Read/write access to BOM items."""

    @abstractmethod
    def find_by_id(self, item_id: str) -> Optional[BOMItem]:
        pass

    @abstractmethod
    def find_by_bom_id(self, bom_id: str) -> List[BOMItem]:
        pass

    @abstractmethod
    def find_by_parent_id(self, parent_item_id: str) -> List[BOMItem]:
        pass

    @abstractmethod
    def find_all_descendants(self, item_id: str) -> List[BOMItem]:
        """All items below item_id, level by level, each returned once."""

    @abstractmethod
    def has_children(self, item_id: str) -> bool:
        pass

    @abstractmethod
    def get_next_sequence(self, bom_id: str, parent_item_id: Optional[str], level: int) -> int:
        """1 + max sibling sequence (1 when there are no siblings)."""

    @abstractmethod
    def is_duplicate(self, bom_id: str, component_id: str, parent_item_id: Optional[str]) -> bool:
        """True if a sibling under the same parent already holds the component."""

    @abstractmethod
    def save(self, item: BOMItem) -> BOMItem:
        pass

    @abstractmethod
    def delete(self, item_id: str, deleted_by: str) -> bool:
        """Logically delete an item."""


class BOMHistoryStore(ABC):
    """Append-only audit trail."""

    @abstractmethod
    def save(self, record: BOMHistory) -> BOMHistory:
        pass

    @abstractmethod
    def find_by_bom_id(self, bom_id: str) -> List[BOMHistory]:
        pass


class ProductLookup(ABC):
    """Product catalog queries used by the engine."""

    @abstractmethod
    def find_by_id(self, product_id: str) -> Optional[Product]:
        pass

    def find_by_ids(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        found = {}
        for product_id in set(product_ids):
            product = self.find_by_id(product_id)
            if product is not None:
                found[product_id] = product
        return found

    def exists(self, product_id: str) -> bool:
        return self.find_by_id(product_id) is not None

    def is_active(self, product_id: str) -> bool:
        product = self.find_by_id(product_id)
        return product is not None and bool(product.is_active)

    def can_have_bom(self, product_id: str) -> bool:
        product = self.find_by_id(product_id)
        return product is not None and product.can_have_bom()


# ============================================================================
# SQLAlchemy implementations
# ============================================================================


class _SQLStore:
    """Shared session handling for the SQLAlchemy-backed stores."""

    def _run(self, description: str, work: Callable[[Session], T], session: Optional[Session] = None) -> T:
        try:
            if session is not None:
                return work(session)
            with session_scope() as session:
                return work(session)
        except SQLAlchemyError as e:
            logger.error(f"Database error while trying to {description}: {e}")
            raise DatabaseError(f"Failed to {description}", original_error=e) from e


def _active_items_query(session: Session):
    return session.query(BOMItem).filter(BOMItem.is_deleted.is_(False))


def _load_items(session: Session, bom: BOM) -> BOM:
    bom.items = (
        _active_items_query(session)
        .filter(BOMItem.bom_id == bom.id)
        .order_by(BOMItem.level, BOMItem.sequence)
        .all()
    )
    return bom


class SQLBOMStore(_SQLStore, BOMStore):
    """BOMStore backed by the boms table."""

    def find_by_id(self, bom_id: str, include_items: bool = True, session: Optional[Session] = None) -> Optional[BOM]:
        def work(session):
            bom = session.get(BOM, bom_id)
            if bom is not None and include_items:
                _load_items(session, bom)
            return bom

        return self._run(f"load BOM {bom_id}", work, session)

    def find_by_product_id_and_version(
        self, product_id: str, version: str, session: Optional[Session] = None
    ) -> Optional[BOM]:
        return self._run(
            f"look up BOM {product_id}/{version}",
            lambda s: s.query(BOM).filter(BOM.product_id == product_id, BOM.version == version).first(),
            session,
        )

    def find_active_by_product_id(self, product_id: str, session: Optional[Session] = None) -> Optional[BOM]:
        def work(session):
            candidates = (
                session.query(BOM)
                .filter(BOM.product_id == product_id, BOM.is_active.is_(True))
                .order_by(BOM.effective_date.desc())
                .all()
            )
            for bom in candidates:
                if bom.is_currently_active():
                    return _load_items(session, bom)
            return None

        return self._run(f"load active BOM of product {product_id}", work, session)

    def find_by_product_id(self, product_id: str, session: Optional[Session] = None) -> List[BOM]:
        return self._run(
            f"list BOMs of product {product_id}",
            lambda s: s.query(BOM).filter(BOM.product_id == product_id).order_by(BOM.effective_date).all(),
            session,
        )

    def save(self, bom: BOM, session: Optional[Session] = None) -> BOM:
        def work(session):
            session.merge(bom)
            session.flush()
            return bom

        return self._run(f"save BOM {bom.id}", work, session)

    def delete(self, bom_id: str, deleted_by: str, session: Optional[Session] = None) -> bool:
        def work(session):
            bom = session.get(BOM, bom_id)
            if bom is None:
                return False
            bom.is_active = False
            bom.updated_by = deleted_by
            bom.updated_at = utc_now()
            return True

        return self._run(f"deactivate BOM {bom_id}", work, session)


class SQLBOMItemStore(_SQLStore, BOMItemStore):
    """BOMItemStore backed by the bom_items table; deleted rows are invisible."""

    def find_by_id(self, item_id: str, session: Optional[Session] = None) -> Optional[BOMItem]:
        return self._run(
            f"load BOM item {item_id}",
            lambda s: _active_items_query(s).filter(BOMItem.id == item_id).first(),
            session,
        )

    def find_by_bom_id(self, bom_id: str, session: Optional[Session] = None) -> List[BOMItem]:
        return self._run(
            f"list items of BOM {bom_id}",
            lambda s: _active_items_query(s)
            .filter(BOMItem.bom_id == bom_id)
            .order_by(BOMItem.level, BOMItem.sequence)
            .all(),
            session,
        )

    def find_by_parent_id(self, parent_item_id: str, session: Optional[Session] = None) -> List[BOMItem]:
        return self._run(
            f"list children of BOM item {parent_item_id}",
            lambda s: _active_items_query(s)
            .filter(BOMItem.parent_item_id == parent_item_id)
            .order_by(BOMItem.sequence)
            .all(),
            session,
        )

    def find_all_descendants(self, item_id: str, session: Optional[Session] = None) -> List[BOMItem]:
        def work(session):
            descendants = []
            visited = {item_id}
            queue = deque([item_id])

            while queue:
                current_id = queue.popleft()
                children = (
                    _active_items_query(session)
                    .filter(BOMItem.parent_item_id == current_id)
                    .order_by(BOMItem.sequence)
                    .all()
                )
                for child in children:
                    # Malformed (cyclic) parent links must not loop forever
                    if child.id in visited:
                        continue
                    visited.add(child.id)
                    descendants.append(child)
                    queue.append(child.id)

            return descendants

        return self._run(f"collect descendants of BOM item {item_id}", work, session)

    def has_children(self, item_id: str, session: Optional[Session] = None) -> bool:
        return self._run(
            f"check children of BOM item {item_id}",
            lambda s: _active_items_query(s).filter(BOMItem.parent_item_id == item_id).count() > 0,
            session,
        )

    def get_next_sequence(
        self, bom_id: str, parent_item_id: Optional[str], level: int, session: Optional[Session] = None
    ) -> int:
        def work(session):
            query = (
                session.query(func.max(BOMItem.sequence))
                .filter(BOMItem.bom_id == bom_id)
                .filter(BOMItem.level == level)
                .filter(BOMItem.is_deleted.is_(False))
            )
            if parent_item_id is None:
                query = query.filter(BOMItem.parent_item_id.is_(None))
            else:
                query = query.filter(BOMItem.parent_item_id == parent_item_id)
            current_max = query.scalar()
            return (current_max or 0) + 1

        return self._run(f"compute next sequence in BOM {bom_id}", work, session)

    def is_duplicate(
        self, bom_id: str, component_id: str, parent_item_id: Optional[str], session: Optional[Session] = None
    ) -> bool:
        def work(session):
            query = _active_items_query(session).filter(
                BOMItem.bom_id == bom_id, BOMItem.component_id == component_id
            )
            if parent_item_id is None:
                query = query.filter(BOMItem.parent_item_id.is_(None))
            else:
                query = query.filter(BOMItem.parent_item_id == parent_item_id)
            return query.count() > 0

        return self._run(f"check duplicate component {component_id}", work, session)

    def save(self, item: BOMItem, session: Optional[Session] = None) -> BOMItem:
        def work(session):
            session.merge(item)
            session.flush()
            return item

        return self._run(f"save BOM item {item.id}", work, session)

    def delete(
        self,
        item_id: str,
        deleted_by: str,
        deleted_at: Optional[datetime] = None,
        session: Optional[Session] = None,
    ) -> bool:
        def work(session):
            item = _active_items_query(session).filter(BOMItem.id == item_id).first()
            if item is None:
                return False
            timestamp = ensure_utc(deleted_at) or utc_now()
            item.is_deleted = True
            item.deleted_at = timestamp
            item.updated_by = deleted_by
            item.updated_at = timestamp
            return True

        return self._run(f"delete BOM item {item_id}", work, session)


class SQLBOMHistoryStore(_SQLStore, BOMHistoryStore):
    """Append-only BOMHistoryStore; records are only ever inserted."""

    def save(self, record: BOMHistory, session: Optional[Session] = None) -> BOMHistory:
        def work(session):
            session.add(record)
            session.flush()
            return record

        return self._run(f"record history for BOM {record.bom_id}", work, session)

    def find_by_bom_id(self, bom_id: str, session: Optional[Session] = None) -> List[BOMHistory]:
        return self._run(
            f"list history of BOM {bom_id}",
            lambda s: s.query(BOMHistory)
            .filter(BOMHistory.bom_id == bom_id)
            .order_by(BOMHistory.timestamp)
            .all(),
            session,
        )

    def find_by_target_id(self, target_id: str, session: Optional[Session] = None) -> List[BOMHistory]:
        return self._run(
            f"list history of {target_id}",
            lambda s: s.query(BOMHistory)
            .filter(BOMHistory.target_id == target_id)
            .order_by(BOMHistory.timestamp)
            .all(),
            session,
        )


class SQLProductLookup(_SQLStore, ProductLookup):
    """ProductLookup backed by the products table."""

    def find_by_id(self, product_id: str, session: Optional[Session] = None) -> Optional[Product]:
        return self._run(f"load product {product_id}", lambda s: s.get(Product, product_id), session)

    def find_by_ids(self, product_ids: Iterable[str], session: Optional[Session] = None) -> Dict[str, Product]:
        ids = list(set(product_ids))
        if not ids:
            return {}

        def work(session):
            products = session.query(Product).filter(Product.id.in_(ids)).all()
            return {product.id: product for product in products}

        return self._run("load products", work, session)

    def find_by_code(self, code: str, session: Optional[Session] = None) -> Optional[Product]:
        return self._run(
            f"look up product code {code}",
            lambda s: s.query(Product).filter(Product.code == code).first(),
            session,
        )
