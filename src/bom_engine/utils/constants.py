"""
Constants and policy thresholds for the BOM engine.

This module defines all system-wide constants including:
- Application metadata
- Validation ranges for BOM-item fields
- Policy knobs used by the update, delete, copy and comparison services

The numeric thresholds below are business policy, not derived values.
Adjust them here rather than inside the services.
"""

from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "BOM Engine"
APP_VERSION = "0.1.0"
DATABASE_FILENAME = "bom_engine.db"
DATABASE_VERSION = "1.0"

# ============================================================================
# Validation Ranges
# ============================================================================

MIN_SCRAP_RATE = 0.0
MAX_SCRAP_RATE = 100.0
MIN_UNIT_COST = 0.0

# Copy cost adjustment rate bounds (percent)
MIN_COST_ADJUSTMENT_RATE = -100.0
MAX_COST_ADJUSTMENT_RATE = 1000.0

MAX_VERSION_LENGTH = 50
# Short free-text item fields (position, process_step)
MAX_TEXT_LENGTH = 100

# ============================================================================
# Cycle Checking
# ============================================================================

DEFAULT_CYCLE_CHECK_MAX_DEPTH = 50

# ============================================================================
# Update / Delete Policy
# ============================================================================

# Item total cost above which a component counts as critical
CRITICAL_COST_THRESHOLD = 10000.0

# Relative quantity change that requires force_update (0.5 == 50%)
QUANTITY_CHANGE_FORCE_RATIO = 0.5

# Fields whose change on an in-use item blocks the update unless forced
USAGE_SENSITIVE_FIELDS: List[str] = ["quantity", "unit_cost", "is_optional"]

# Fields whose change marks an update as critical
CRITICAL_UPDATE_FIELDS: List[str] = ["quantity", "unit_cost", "is_optional"]

# Impact tiers for update impact analysis and deletion analysis
IMPACT_MEDIUM_COST = 10000.0
IMPACT_HIGH_COST = 50000.0
IMPACT_MEDIUM_ITEM_COUNT = 5
IMPACT_HIGH_ITEM_COUNT = 10

# ============================================================================
# Comparison Policy
# ============================================================================

SIGNIFICANCE_MEDIUM_COST = 10000.0
SIGNIFICANCE_HIGH_COST = 100000.0
SIGNIFICANCE_HIGH_DELETE_COST = 50000.0

COMPLEXITY_MEDIUM_CHANGES = 20
COMPLEXITY_HIGH_CHANGES = 50
COMPLEXITY_MEDIUM_STRUCTURAL = 5
COMPLEXITY_HIGH_STRUCTURAL = 10

CONFIDENCE_FULL = 100
CONFIDENCE_STRUCTURAL_DOMINANT = 85
CONFIDENCE_LARGE_COST_SWING = 90
CONFIDENCE_REVIEW_BELOW = 90
STRUCTURAL_DOMINANCE_RATIO = 0.5
LARGE_COST_SWING_PERCENT = 50.0

RECOMMEND_REVIEW_MAJOR_CHANGES = 5
RECOMMEND_COST_REVIEW_PERCENT = 20.0
RECOMMEND_STRUCTURE_REVIEW_COUNT = 10

# Separator used when rendering an ancestor path of component codes
ANCESTOR_PATH_SEPARATOR = " > "

# Label used for items without a process step in copy statistics
UNASSIGNED_PROCESS_STEP = "unassigned"

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Value must be zero or greater"
ERROR_INVALID_PERCENTAGE = "Value must be between 0 and 100"
