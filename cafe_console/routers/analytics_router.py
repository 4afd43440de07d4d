from typing import Annotated, Optional

from fastapi import APIRouter, Depends

from .. import schemas
from ..analytics import AnalyticsReader, admin_stats, paginate
from ..api_client import CafeApiClient
from ..deps import cafe_of, get_analytics_reader, get_api, require_view

router = APIRouter(tags=["Analytics"])


@router.get("/dashboard/analytics", response_model=schemas.AnalyticsPage)
async def analytics(
        profile: Annotated[schemas.OperatorProfile, Depends(require_view("analytics"))],
        reader: Annotated[AnalyticsReader, Depends(get_analytics_reader)],
        range: str = "7d",
        search: Optional[str] = None,
        page: int = 1,
):
    """
    Footfall and revenue for the café, as computed by the reporting API.
    """
    report = await reader.report(cafe_of(profile), range, search)
    return paginate(report, range, page)


@router.get("/dashboard/cafe")
async def dashboard_stats(
        profile: Annotated[schemas.OperatorProfile, Depends(require_view("admin_dashboard"))],
        api: Annotated[CafeApiClient, Depends(get_api)],
):
    return await admin_stats(api)
