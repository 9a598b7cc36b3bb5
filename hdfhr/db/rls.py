import logging
from pathlib import Path
from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"
RLS_FILE = "002_rls_policies.sql"


def apply_rls_policies(engine: Engine, path: Path | None = None) -> bool:
    """Install the row-level security functions and policies on PostgreSQL.

    Other backends have no RLS; access rules are then enforced only by
    ``hdfhr.core.policies``.
    """
    if engine.dialect.name != "postgresql":
        log.info("Skipping RLS policies on %s", engine.dialect.name)
        return False
    path = path or MIGRATIONS_DIR / RLS_FILE
    sql = path.read_text()
    with engine.begin() as conn:
        conn.exec_driver_sql(sql)
    log.info("Applied RLS policies from %s", path.name)
    return True
