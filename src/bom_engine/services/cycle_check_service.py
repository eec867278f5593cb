"""
Cycle Check Service - circular reference detection for BOM compositions.

A composition is cyclic when a product (transitively) contains itself:
directly (a product added to its own BOM) or indirectly (the candidate's
active BOM, or a BOM further down, contains the owner product).

The indirect search is a depth-first walk over product ids, following each
visited product's currently active BOM. Each branch carries its own copy of
the path so a component reused in several branches (a diamond) is not a
cycle. The walk is bounded by max_depth; hitting the bound is reported as
"no cycle within the limit", not as a cycle.

Results can be cached in a CycleCheckCache. The cache is never invalidated
automatically: callers clear it after any structural change.
"""

import logging
import threading
from typing import Dict, List, Optional, Set

from ..models import BOM, BOMItem
from ..utils.config import get_config
from .bom_repositories import BOMStore
from .dto import CycleCheckOptions, CycleCheckResult
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)


class CycleCheckCache:
    """
    Thread-safe store of cycle-check results.

    Entries never expire; clear() must be called after any change to the
    BOM graph.
    """

    def __init__(self):
        self._entries: Dict[str, CycleCheckResult] = {}
        self._lock = threading.RLock()

    @staticmethod
    def make_key(scope_id: str, component_id: str, options: CycleCheckOptions) -> str:
        return f"{scope_id}-{component_id}-{options.max_depth}-{options.include_self_reference}"

    def get(self, key: str) -> Optional[CycleCheckResult]:
        with self._lock:
            return self._entries.get(key)

    def put(self, key: str, result: CycleCheckResult) -> None:
        with self._lock:
            self._entries[key] = result

    def invalidate(self, pattern: str) -> int:
        """Remove entries whose key contains pattern; returns the count removed."""
        with self._lock:
            keys = [key for key in self._entries if pattern in key]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._entries)


class BOMCycleChecker:
    """
    Detects circular references in BOM compositions.

    Args:
        bom_store: Source of each product's currently active BOM
        cache: Optional result cache (no caching when omitted)
        default_max_depth: Search bound when options don't give one
    """

    def __init__(
        self,
        bom_store: BOMStore,
        cache: Optional[CycleCheckCache] = None,
        default_max_depth: Optional[int] = None,
    ):
        self.bom_store = bom_store
        self.cache = cache
        self.default_max_depth = default_max_depth or get_config().cycle_check_max_depth

    def default_options(self) -> CycleCheckOptions:
        return CycleCheckOptions(max_depth=self.default_max_depth)

    # ------------------------------------------------------------------
    # Public checks
    # ------------------------------------------------------------------

    def has_circular_reference(
        self,
        owner_product_id: str,
        component_id: str,
        options: Optional[CycleCheckOptions] = None,
    ) -> CycleCheckResult:
        """
        Would adding component_id to owner_product_id's BOM create a cycle?

        Args:
            owner_product_id: Product that owns the BOM being edited
            component_id: Candidate component product
            options: Search options (defaults from config)

        Returns:
            CycleCheckResult; path runs from the owner back to the owner
        """
        options = options or self.default_options()
        key = CycleCheckCache.make_key(owner_product_id, component_id, options)
        return self._cached(key, options, lambda: self._check(owner_product_id, component_id, options))

    def check_component_addition(
        self,
        owner_product_id: str,
        component_id: str,
        options: Optional[CycleCheckOptions] = None,
    ) -> CycleCheckResult:
        """Uncached variant of has_circular_reference."""
        return self._check(owner_product_id, component_id, options or self.default_options())

    def check_item_addition(
        self,
        bom: BOM,
        item: BOMItem,
        options: Optional[CycleCheckOptions] = None,
    ) -> CycleCheckResult:
        """
        Check a new item against its BOM; cached per (BOM, component, options).

        Args:
            bom: BOM the item is being added to
            item: Constructed (not yet persisted) item
            options: Search options (defaults from config)

        Returns:
            CycleCheckResult
        """
        options = options or self.default_options()
        key = CycleCheckCache.make_key(bom.id, item.component_id, options)
        return self._cached(key, options, lambda: self._check(bom.product_id, item.component_id, options))

    def check_bom_structure(
        self,
        bom: BOM,
        options: Optional[CycleCheckOptions] = None,
        include_component_boms: bool = True,
    ) -> CycleCheckResult:
        """
        Check a whole BOM tree for cycles.

        Walks the loaded item forest top-down, tracking the component ids on
        the current root-to-node path; a repeat on the path is a cycle. The
        owner product counts as the first path element when self references
        are checked. With include_component_boms, every distinct component
        is also searched through the active BOMs below it.

        Args:
            bom: BOM with items loaded
            options: Search options (defaults from config)
            include_component_boms: Also follow each component's active BOM

        Returns:
            First cycle found, or a no-cycle result
        """
        options = options or self.default_options()

        children: Dict[Optional[str], List[BOMItem]] = {}
        for item in bom.items:
            children.setdefault(item.parent_item_id, []).append(item)
        for siblings in children.values():
            siblings.sort(key=lambda i: i.sequence)

        root_path = [bom.product_id] if options.include_self_reference else []
        for root in children.get(None, []):
            result = self._walk_tree(root, children, root_path, set())
            if result.has_cycle:
                self._log_cycle("check_bom_structure", bom.product_id, result)
                return result

        depth_limited = False
        if include_component_boms:
            for component_id in sorted({item.component_id for item in bom.items}):
                result = self.has_circular_reference(bom.product_id, component_id, options)
                if result.has_cycle:
                    return result
                depth_limited = depth_limited or result.depth_limit_reached

        return CycleCheckResult(has_cycle=False, depth_limit_reached=depth_limited)

    def clear_cache(self) -> None:
        if self.cache is not None:
            self.cache.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _cached(self, key, options, compute) -> CycleCheckResult:
        use_cache = options.use_cache and self.cache is not None
        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        result = compute()

        if use_cache:
            self.cache.put(key, result)
        return result

    def _check(self, owner_product_id: str, component_id: str, options: CycleCheckOptions) -> CycleCheckResult:
        if options.include_self_reference and owner_product_id == component_id:
            result = CycleCheckResult(has_cycle=True, path=[owner_product_id], depth=0)
            self._log_cycle("self_reference", owner_product_id, result)
            return result

        result = self._search(owner_product_id, [component_id], 1, options.max_depth)
        if result.has_cycle:
            self._log_cycle("indirect_reference", owner_product_id, result)
        return result

    def _search(self, owner_product_id: str, path: List[str], depth: int, max_depth: int) -> CycleCheckResult:
        """Depth-first search below path[-1] for the owner product."""
        if depth > max_depth:
            return CycleCheckResult(has_cycle=False, depth_limit_reached=True)

        current_id = path[-1]
        active_bom = self.bom_store.find_active_by_product_id(current_id)
        if active_bom is None:
            return CycleCheckResult(has_cycle=False)

        depth_limited = False
        for item in active_bom.items:
            child_id = item.component_id
            if child_id == owner_product_id:
                return CycleCheckResult(
                    has_cycle=True,
                    path=[owner_product_id] + path + [owner_product_id],
                    depth=depth,
                )
            if child_id in path:
                # Existing loop below the candidate
                return CycleCheckResult(has_cycle=True, path=path + [child_id], depth=depth)

            result = self._search(owner_product_id, path + [child_id], depth + 1, max_depth)
            if result.has_cycle:
                return result
            depth_limited = depth_limited or result.depth_limit_reached

        return CycleCheckResult(has_cycle=False, depth_limit_reached=depth_limited)

    def _walk_tree(
        self,
        item: BOMItem,
        children: Dict[Optional[str], List[BOMItem]],
        path: List[str],
        seen_items: Set[str],
    ) -> CycleCheckResult:
        if item.component_id in path:
            return CycleCheckResult(has_cycle=True, path=path + [item.component_id], depth=len(path))
        if item.id in seen_items:
            return CycleCheckResult(has_cycle=False)

        branch_items = seen_items | {item.id}
        branch_path = path + [item.component_id]
        for child in children.get(item.id, []):
            result = self._walk_tree(child, children, branch_path, branch_items)
            if result.has_cycle:
                return result
        return CycleCheckResult(has_cycle=False)

    @staticmethod
    def _log_cycle(check: str, owner_product_id: str, result: CycleCheckResult) -> None:
        log_operation(
            logger,
            operation="cycle_check",
            outcome="cycle_detected",
            level=logging.DEBUG,
            check=check,
            owner_product_id=owner_product_id,
            cycle_path=result.path,
            depth=result.depth,
        )
