"""BOM Engine - hierarchical bill-of-materials management for manufacturing execution."""

__version__ = "0.1.0"
