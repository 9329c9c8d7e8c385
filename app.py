"""
CivicLens - composition root

Builds one explicit context (database handle, models, services, collaborators)
at startup. Nothing below keeps module-level connections; callers hold the
context and pass it where needed.

Run directly to check the connection, create indexes and print a stats summary.
"""
from dataclasses import dataclass
from typing import Optional

from config import Settings
from database.database import Database, connect
from database.init_db import create_indexes, verify_connection
from database.models import CivicUpdateModel, IssueModel, UserModel
from logging_setup import get_logger, setup_logging
from services.civic_update_service import CivicUpdateService
from services.dashboard_service import DashboardService
from services.image_store import InlineImageStore
from services.issue_service import IssueService

log = get_logger("app")


@dataclass
class CivicContext:
    settings: Settings
    db: Database
    users: UserModel
    issues: IssueService
    updates: CivicUpdateService
    dashboard: DashboardService
    image_store: object

    def close(self) -> None:
        self.db.client.close()


def build_context(settings: Optional[Settings] = None, client=None, image_store=None,
                  points_ledger=None) -> CivicContext:
    """
    Wire models and services together.

    ``client`` defaults to a real MongoClient from the settings; tests pass an
    in-memory client. ``points_ledger`` defaults to the users collection.
    """
    settings = settings or Settings.from_env()
    if client is None:
        client = connect(settings)
    db = Database(client, settings.database_name)

    users = UserModel(db.users)
    issue_model = IssueModel(db.issues, users)
    update_model = CivicUpdateModel(db.civic_updates)
    if image_store is None:
        image_store = InlineImageStore(settings.image_max_width, settings.image_jpeg_quality)

    return CivicContext(
        settings=settings,
        db=db,
        users=users,
        issues=IssueService(
            issue_model,
            users,
            image_store=image_store,
            points_ledger=points_ledger,
            report_points=settings.issue_report_points,
            max_page_size=settings.max_page_size,
        ),
        updates=CivicUpdateService(update_model, max_page_size=settings.max_page_size),
        dashboard=DashboardService(issue_model, users, update_model, max_workers=settings.dashboard_workers),
        image_store=image_store,
    )


def main() -> int:
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    try:
        ctx = build_context(settings)
    except ConnectionError as e:
        log.error(f"Cannot start without a database: {e}")
        log.error("Check MONGODB_URI in your .env file")
        return 1

    try:
        if not verify_connection(ctx.db):
            return 1
        create_indexes(ctx.db)
        stats = ctx.dashboard.get_stats()
        log.info(
            f"{stats['totalIssues']} issues, {stats['resolvedIssues']} resolved "
            f"({stats['resolutionRate']:.1f}%), {len(stats['recentUpdates'])} recent updates"
        )
    finally:
        ctx.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
