"""FastAPI routes for incident reports."""

import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from controllers.report_controller import (
    LOAD_FAILED_MESSAGE,
    SAVE_FAILED_MESSAGE,
    create_report,
    get_report,
    list_reports,
)

LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


@router.post("", status_code=201, summary="Submit an incident report")
async def create_report_route(request: Request):
    """Accept report fields as multipart/urlencoded form or JSON.

    The optional `incidentImage` file part is normalized before the report is
    stored.
    """
    try:
        return await create_report(request)
    except StarletteHTTPException:
        raise
    except Exception:  # pylint: disable=broad-exception-caught
        LOGGER.exception("Unhandled error while creating report")
        return JSONResponse(status_code=500, content={"message": SAVE_FAILED_MESSAGE})


@router.get("")
async def list_reports_route(
    request: Request,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
):
    try:
        return await list_reports(request, limit, offset)
    except HTTPException:
        raise
    except Exception as exc:
        LOGGER.exception("Error listing reports")
        raise HTTPException(status_code=500, detail=LOAD_FAILED_MESSAGE) from exc


@router.get("/{report_id}")
async def get_report_route(request: Request, report_id: int):
    """Return the stored report with the given id."""
    try:
        return await get_report(request, report_id)
    except HTTPException:
        raise
    except Exception as exc:
        LOGGER.exception("Error loading report %s", report_id)
        raise HTTPException(status_code=500, detail=LOAD_FAILED_MESSAGE) from exc
