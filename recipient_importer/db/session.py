import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine.url import make_url

from recipient_importer.core.config import settings

logger = logging.getLogger(__name__)

_engine = None


def _report_connection_failure(exc: Exception) -> None:
    """Log high-signal diagnostics when the service cannot reach the database."""
    logger.warning(f"Could not connect to database: {exc}")
    try:
        url = make_url(settings.database_url)
    except Exception as parse_error:  # pragma: no cover
        logger.warning(f"Unable to parse DATABASE_URL ({parse_error}); skipping detailed diagnostics.")
        return

    logger.warning(
        "Database connection settings: dialect=%s host=%s port=%s database=%s user=%s",
        url.get_backend_name(),
        url.host or "localhost",
        url.port or "(default)",
        url.database,
        url.username,
    )


def get_engine():
    global _engine
    if _engine is None:
        try:
            _engine = create_engine(settings.database_url, pool_pre_ping=True)
            # Test connection eagerly so failures surface immediately.
            with _engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            _report_connection_failure(e)
            # Keep the engine so callers can proceed (may still fail later).
            _engine = create_engine(settings.database_url, pool_pre_ping=True)
    return _engine


def dispose_engine() -> None:
    """Close pooled connections; the next get_engine() call starts fresh."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
