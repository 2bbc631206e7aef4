"""
Database engine and session management.

Builds the SQLAlchemy engine from environment configuration with a test
fallback (SQLite in-memory) and exposes FastAPI dependencies.
"""
import os
import sys
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _is_pytest_runtime() -> bool:
    """Best-effort detection that we're executing under pytest.

    ``PYTEST_CURRENT_TEST`` is only set while an individual test is running,
    so module import during collection is detected through ``sys.modules``.
    ``PYTEST_RUNNING=1`` forces the check on.
    """
    if os.getenv("PYTEST_RUNNING") == "1":
        return True
    if "PYTEST_CURRENT_TEST" in os.environ:
        return True
    return "pytest" in sys.modules


# Database connection URL
# Generate dynamically from individual components if DATABASE_URL is not provided
def _get_database_url() -> str:
    if os.getenv("DATABASE_URL"):
        return os.getenv("DATABASE_URL")

    db_user = os.getenv("POSTGRES_USER")
    db_password = os.getenv("POSTGRES_PASSWORD")
    db_host = os.getenv("POSTGRES_HOST")
    db_port = os.getenv("POSTGRES_PORT")
    db_name = os.getenv("POSTGRES_DB")

    if not all([db_user, db_password, db_host, db_port, db_name]):
        missing = [
            name for name, value in (
                ("POSTGRES_USER", db_user),
                ("POSTGRES_PASSWORD", db_password),
                ("POSTGRES_HOST", db_host),
                ("POSTGRES_PORT", db_port),
                ("POSTGRES_DB", db_name),
            ) if not value
        ]
        raise ValueError(f"Missing required database environment variables: {', '.join(missing)}")

    return f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


# Test override strategy:
# 1. If BACKOFFICE_TEST_DB is set, use it.
# 2. Else if TEST_DATABASE_URL (used by e2e tests) is set, use it.
# 3. Else under pytest force in-memory sqlite; unit and integration tests rely on it.
explicit_test_db = os.getenv("BACKOFFICE_TEST_DB")
explicit_e2e_db = os.getenv("TEST_DATABASE_URL")

if explicit_test_db:
    DATABASE_URL = explicit_test_db
    _engine_kwargs = {"connect_args": {"check_same_thread": False}} if DATABASE_URL.startswith("sqlite") else {}
elif explicit_e2e_db:
    DATABASE_URL = explicit_e2e_db
    _engine_kwargs = {}
elif _is_pytest_runtime():
    # In-memory SQLite with StaticPool so the schema persists across connections
    # (store calls run in worker threads and each opens its own session).
    DATABASE_URL = "sqlite+pysqlite:///:memory:"
    _engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "poolclass": StaticPool,
    }
else:
    DATABASE_URL = _get_database_url()
    _engine_kwargs = {"pool_pre_ping": True}

engine = create_engine(DATABASE_URL, **_engine_kwargs)

# Create a SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_sqlite_schema(bind=None) -> bool:
    """Create all tables on SQLite binds; Postgres schemas are owned by Alembic."""
    bind = bind or engine
    if not str(bind.url).startswith("sqlite"):
        return False
    from backoffice.db import models  # local import to avoid circular import at module load
    models.Base.metadata.create_all(bind=bind)
    return True
