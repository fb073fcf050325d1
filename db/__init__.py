"""
Brickstore - Database Layer

- ``db.models``: ORM mappings for the catalog, carts and orders
- ``db.transactor``: the pooled engine and its two executors
- ``db.migrations``: alembic-driven schema upgrades

Usage:
    from db.transactor import ConnectionPoolProvider
    from db.migrations import MigrationRunner

    MigrationRunner().migrate(db_config)
    async with ConnectionPoolProvider().acquire(db_config) as transactor:
        ...
"""
from db.models import Base, Brick, CartLine, Order, OrderLine

__all__ = ["Base", "Brick", "CartLine", "Order", "OrderLine"]
