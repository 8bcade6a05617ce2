"""
Alembic environment for the service master schema.

The target database is the same one the app uses: PostgreSQL when
DATABASE_URL is set, otherwise the SQLite file under DATA_DIR.
"""

from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool
from alembic import context

from db import SERVICE_DB
from config import Config

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Migrations are written with op.create_table, no declarative models
target_metadata = None


def _database_url():
    url = Config.DATABASE_URL
    if not url:
        return f"sqlite:///{SERVICE_DB}"
    # SQLAlchemy 2.x rejects the postgres:// scheme some hosts still hand out
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


config.set_main_option("sqlalchemy.url", _database_url())


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of running it."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            # SQLite needs batch mode for ALTER TABLE
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
