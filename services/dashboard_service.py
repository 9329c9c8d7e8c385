"""
Dashboard Service - on-demand statistics and map projections

Nothing here is maintained incrementally; every call reads the store.
totalIssues, resolvedIssues, unresolvedIssues and issuesByStatus come from
one aggregation so the three totals always agree. The remaining rows are
independent reads run in parallel.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Tuple

from database.models import CivicUpdateModel, IssueModel, UserModel
from database.schemas import RESOLVED_STATUS
from logging_setup import get_logger
from search.geo import BoundingBox, bbox_predicate

log = get_logger("dashboard")

TOP_CONTRIBUTORS = 5
RECENT_UPDATES = 5


def _rows(counts: List[Tuple[Any, int]]) -> List[Dict]:
    """{value, count} rows, largest count first, then by value"""
    ordered = sorted(counts, key=lambda row: (-row[1], str(row[0])))
    return [{"value": value, "count": count} for value, count in ordered]


def resolution_rate(total: int, resolved: int) -> float:
    return (resolved / total) * 100 if total > 0 else 0.0


class DashboardService:
    def __init__(self, issues: IssueModel, users: UserModel, updates: CivicUpdateModel, max_workers: int = 4):
        self.issues = issues
        self.users = users
        self.updates = updates
        self.max_workers = max(1, max_workers)

    def _status_snapshot(self) -> Dict:
        by_status = self.issues.group_counts("status")
        total = sum(count for _, count in by_status)
        resolved = sum(count for value, count in by_status if value == RESOLVED_STATUS)
        return {
            "totalIssues": total,
            "resolvedIssues": resolved,
            "unresolvedIssues": total - resolved,
            "issuesByStatus": _rows(by_status),
        }

    def get_stats(self) -> Dict:
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            status = pool.submit(self._status_snapshot)
            by_category = pool.submit(self.issues.group_counts, "category")
            contributors = pool.submit(self.users.top_by_points, TOP_CONTRIBUTORS)
            recent = pool.submit(self.updates.recent, RECENT_UPDATES)

            snapshot = status.result()
            stats = {
                "totalIssues": snapshot["totalIssues"],
                "resolvedIssues": snapshot["resolvedIssues"],
                "unresolvedIssues": snapshot["unresolvedIssues"],
                "resolutionRate": resolution_rate(snapshot["totalIssues"], snapshot["resolvedIssues"]),
                "topContributors": contributors.result(),
                "recentUpdates": recent.result(),
                "issuesByCategory": _rows(by_category.result()),
                "issuesByStatus": snapshot["issuesByStatus"],
            }
        log.debug(f"Stats computed: {stats['totalIssues']} issues, {stats['resolvedIssues']} resolved")
        return stats

    def get_map_data(self, bounds: Optional[Any] = None) -> List[Dict]:
        """
        Lightweight issue points for the map.

        ``bounds`` is ``{ne: [lon, lat], sw: [lon, lat]}`` (mapping or JSON
        string); a missing or malformed box returns every issue.
        """
        box = BoundingBox.parse(bounds)
        if bounds is not None and box is None:
            log.debug(f"Ignoring malformed map bounds: {bounds!r}")
        points = []
        for doc in self.issues.map_points(bbox_predicate(box)):
            points.append({
                "id": str(doc["_id"]),
                "title": doc.get("title"),
                "category": doc.get("category"),
                "status": doc.get("status"),
                "severity": doc.get("severity"),
                "coordinates": (doc.get("location") or {}).get("coordinates", [0.0, 0.0]),
            })
        return points
