"""modelfunc exception hierarchy."""


class ModelFuncError(Exception):
    """Base exception for all modelfunc errors."""


class StoreError(ModelFuncError):
    """Relational store failure (constraint violation, connectivity, not found)."""


class RecordNotFoundError(StoreError):
    """No row matched the query."""

    def __init__(self, table: str, record_id: int):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table}: record {record_id} not found")


class CacheError(ModelFuncError):
    """Cache backend failure other than an absent entry."""


class CacheMiss(ModelFuncError):
    """Cache entry absent. Triggers a store fallback, never surfaced by ModelFunc."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"cache miss: {key}")


class ConfigError(ModelFuncError):
    """Unknown link type or missing link parameter."""
