"""Sales dashboard engine: batched loading, cascading facets, rollups and reconciliation."""

__version__ = "0.1.0"
