"""Domain models and lot accounting for the crypto taxes engine.

Ledger records are in-memory (Pydantic) models, independent from the
persistence models so that business logic and tests can evolve without DB
coupling. Inventories and the calculator operate purely on these types.
"""

__all__ = [
    "calculator",
    "cashflow_ledger",
    "inventory",
    "ledger",
    "pricing",
]
