"""
api/routes/v1/reports.py -- PDF report downloads (owner, receptionist).

  GET /api/reports/{cars,jobs,inventory,mechanics,payments}

The PDF is rendered completely before the response starts, so a failure while
loading records or drawing surfaces as the normal 500 envelope and the client
never receives a truncated document.
"""

import logging
from typing import Callable, Literal

from fastapi import APIRouter, Depends, Request, Response

from auth.dependencies import get_current_user, require_roles
from auth.models import Identity
from shop.reports import REPORTS, render_report
from shop.store import ShopStore

logger = logging.getLogger("garage.reports")

router = APIRouter(dependencies=[Depends(get_current_user)])

_staff = require_roles("owner", "receptionist")

ReportName = Literal["cars", "jobs", "inventory", "mechanics", "payments"]

_LOADERS: dict[str, Callable[[ShopStore], list]] = {
    "cars": ShopStore.all_cars,
    "jobs": ShopStore.all_jobs,
    "inventory": ShopStore.all_items,
    "mechanics": ShopStore.all_mechanics,
    "payments": ShopStore.all_payments,
}


@router.get("/reports/{name}", response_class=Response)
def download_report(request: Request, name: ReportName, identity: Identity = Depends(_staff)) -> Response:
    spec = REPORTS[name]
    records = _LOADERS[name](request.app.state.shop_store)
    pdf = render_report(spec, records)
    logger.info("report %s (%d rows) requested by user id=%s", name, len(records), identity.id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{spec.filename}"'},
    )
