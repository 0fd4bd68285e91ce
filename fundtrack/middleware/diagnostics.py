"""
Startup diagnostics: runs once when the Flask app starts.

Checks the database and logs a summary banner.
"""

import logging
import sys

from flask import Flask

from fundtrack.models import db

logger = logging.getLogger(__name__)


def run_startup_diagnostics(app: Flask):
    """Run diagnostic checks during app startup (inside app context)."""
    if app.config.get("TESTING"):
        return  # skip during tests for speed

    issues: list[str] = []

    with app.app_context():
        py = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"

        db_status = "ok"
        db_uri = str(app.config.get("SQLALCHEMY_DATABASE_URI", ""))
        db_type = "PostgreSQL" if "postgresql" in db_uri else "SQLite" if "sqlite" in db_uri else "unknown"
        try:
            db.session.execute(db.text("SELECT 1"))
        except Exception as exc:
            db_status = f"FAILED ({exc})"
            issues.append(f"Database unreachable: {exc}")

        try:
            from sqlalchemy import inspect as sa_inspect
            table_count = len(sa_inspect(db.engine).get_table_names())
            if table_count == 0:
                issues.append("No tables found; run 'flask db upgrade'")
        except Exception:
            table_count = "?"

        if db_type == "SQLite":
            # SQLite ignores FOR UPDATE; writers are serialized by the file lock only
            issues.append("SQLite backend: per-project row locks are not enforced")

        logger.info(
            "FundTrack startup: python=%s debug=%s database=%s (%s) tables=%s "
            "cost_projection_days=%s",
            py,
            app.debug,
            db_type,
            db_status,
            table_count,
            app.config.get("COST_PROJECTION_DAYS"),
        )

        if issues:
            logger.warning("Startup issues detected:")
            for issue in issues:
                logger.warning("  %s", issue)
        else:
            logger.info("All startup checks passed")
