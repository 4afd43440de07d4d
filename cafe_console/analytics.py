import logging
import math
from typing import Hashable, Optional

from .api_client import CafeApiClient
from .config import settings
from .exceptions import InvalidValue
from .querying import LatestQueryGate
from .schemas import AnalyticsPage, AnalyticsReport

logger = logging.getLogger("cafe_console.analytics")

RANGES = ("7d", "10d", "1m", "3m", "6m", "1y")
RANGE_LABELS = {
    "7d": "Last 7 days",
    "10d": "Last 10 days",
    "1m": "Last month",
    "3m": "Last 3 months",
    "6m": "Last 6 months",
    "1y": "Last year",
}
PAGE_SIZE = 15


def paginate(report: AnalyticsReport, range_: str, page: int = 1, page_size: int = PAGE_SIZE) -> AnalyticsPage:
    """One page of rows, with the summary and chart repeated on every page."""
    total_pages = max(1, math.ceil(len(report.rows) / page_size))
    page = min(max(1, page), total_pages)
    start = (page - 1) * page_size
    return AnalyticsPage(
        range=range_,
        range_label=RANGE_LABELS.get(range_, range_),
        summary=report.summary,
        chart=report.chart,
        rows=report.rows[start:start + page_size],
        page=page,
        total_pages=total_pages,
    )


class AnalyticsReader:
    """Read-only view of the reporting API. All aggregation happens server-side."""

    def __init__(self, api: CafeApiClient, gate: Optional[LatestQueryGate] = None, session_key: Hashable = "anonymous"):
        self.api = api
        self.gate = gate or LatestQueryGate()
        self.session_key = session_key

    async def report(self, cafe_id: str, range_: str = "7d", search: Optional[str] = None) -> AnalyticsReport:
        if range_ not in RANGES:
            raise InvalidValue("range", f"range must be one of {', '.join(RANGES)}")
        search = (search or "").strip() or None

        async def fetch():
            return await self.api.get(
                f"/bookings/cafe-analytics/{cafe_id}", params={"range": range_, "search": search}
            ) or {}

        data = await self.gate.run(
            (self.session_key, "analytics", cafe_id),
            fetch,
            delay=settings.SEARCH_DEBOUNCE_SECONDS if search else 0.0,
        )
        return AnalyticsReport.model_validate(data)


async def admin_stats(api: CafeApiClient) -> dict:
    return await api.get("/admin/dashboard/stats") or {}
