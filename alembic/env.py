# alembic/env.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import create_engine, pool

# --- Carga .env de la raíz del proyecto ---
PROJECT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(PROJECT_DIR / ".env")

config = context.config
if config.config_file_name:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

# --- URL de conexión ---
# Preferimos variables de entorno; fallback a sqlalchemy.url en alembic.ini
db_url = (
    os.getenv("DATABASE_URL")
    or os.getenv("SQLALCHEMY_DATABASE_URI")
    or config.get_main_option("sqlalchemy.url")
)

if not db_url:
    raise RuntimeError(
        "No se encontró URL de BD. Define DATABASE_URL en .env "
        "o sqlalchemy.url en alembic.ini"
    )

if db_url.startswith("postgres://"):
    db_url = "postgresql://" + db_url[len("postgres://"):]

# Fuerza sslmode=require cuando es Supabase y no está presente
if ("supabase.co" in db_url or "supabase.com" in db_url) and "sslmode=" not in db_url:
    sep = "&" if "?" in db_url else "?"
    db_url = f"{db_url}{sep}sslmode=require"

# --- Metadata de modelos para autogenerate ---
from app.core.logging_config import mask_url  # noqa: E402
from app.db.base import Base  # noqa: E402

target_metadata = Base.metadata

logger.info("sqlalchemy.url = %s", mask_url(db_url))


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode."""
    engine = create_engine(db_url, poolclass=pool.NullPool)
    with engine.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
