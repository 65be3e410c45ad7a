"""Alembic environment for the notification_records schema.

Migrations run synchronously against DATABASE_URL (asyncpg rewritten to
psycopg2).
"""

from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

load_dotenv(".env")
load_dotenv(".env.local", override=True)

from notifier.database import get_sync_database_url
from notifier.tables import include_in_migrations, metadata

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

url = get_sync_database_url()
options = {
    "target_metadata": metadata,
    "include_object": include_in_migrations,
    "compare_type": True,
}

if context.is_offline_mode():
    # Emit SQL for review instead of applying it
    context.configure(url=url, literal_binds=True, **options)
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = create_engine(url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(connection=connection, **options)
        with context.begin_transaction():
            context.run_migrations()
