# Import Base and all models that should be tracked by migrations
from alembic import context

from inventory.database import Base
import inventory.models  # noqa: F401


config = context.config

# target_metadata contains definitions of all tables declared in models (Base.metadata)
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode, generating SQL scripts without DB connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url") or "sqlite://",
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations on the live store connection handed over by SchemaManager."""
    connection = config.attributes.get("connection")
    if connection is None:
        raise RuntimeError("Migrations run against the in-memory store; use SchemaManager.ensure_schema()")

    # The caller owns the transaction, so every revision and the version stamp commit together
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


# Select execution mode based on Alembic configuration
if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
