import json
import logging
from typing import Any, Dict, List, Optional, Tuple, Union

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from dal.report_dal import ReportDAL
from models.image_outcome import Artifact, ImageOutcome, Skipped
from models.report_record import ReportRecord
from models.report_submission import SubmissionRejected
from services.image_normalizer import ImageNormalizer
from utils.media_validation import is_upload, read_image_upload
from utils.report_validation import validate_submission

LOGGER = logging.getLogger(__name__)

IMAGE_FIELD = "incidentImage"

SAVED_MESSAGE = "Report saved successfully."
REJECTED_MESSAGE = "Report submission is invalid."
SAVE_FAILED_MESSAGE = "Internal error while saving the report."
LOAD_FAILED_MESSAGE = "Internal error while loading reports."


async def _read_fields(request: Request) -> Tuple[Union[Dict[str, Any], SubmissionRejected], Optional[UploadFile]]:
    """Extract report fields and the optional image part from a JSON or form body."""
    content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()

    if content_type == "application/json":
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return SubmissionRejected([{"field": "body", "message": "Request body is not valid JSON"}]), None
        if not isinstance(payload, dict):
            return SubmissionRejected([{"field": "body", "message": "Request body must be a JSON object"}]), None
        return payload, None

    form = await request.form()
    fields = {key: value for key, value in form.items() if not is_upload(value)}
    image = form.get(IMAGE_FIELD)
    return fields, image if is_upload(image) else None


async def _normalize_image(request: Request, upload: Optional[UploadFile]) -> ImageOutcome:
    """Run the Image Normalizer stage when an attachment is present and the stage is enabled."""
    if upload is None:
        return Skipped("no image attached")

    normalizer: Optional[ImageNormalizer] = getattr(request.app.state, "image_normalizer", None)
    if normalizer is None:
        await upload.close()
        LOGGER.info("Image attachment ignored: image uploads are disabled")
        return Skipped("image uploads disabled")

    raw = await read_image_upload(upload)
    return await normalizer.normalize(raw)


async def create_report(request: Request) -> JSONResponse:
    """Validate, optionally normalize the image, persist and return the new id.

    Args:
        request: FastAPI Request (used to access app.state for the database
            handle and the optional image normalizer).

    Returns:
        201 with `{message, reportId}`; 400 with field errors when the
        submission is invalid; 500 with `{message}` when the insert fails.
    """
    LOGGER.info("Report received")

    fields, upload = await _read_fields(request)
    submission = fields if isinstance(fields, SubmissionRejected) else validate_submission(fields)
    if isinstance(submission, SubmissionRejected):
        if upload is not None:
            await upload.close()
        LOGGER.info("Report rejected: %s", ", ".join(submission.fields))
        return JSONResponse(status_code=400, content={"message": REJECTED_MESSAGE, "errors": submission.errors})

    outcome = await _normalize_image(request, upload)
    if isinstance(outcome, Skipped) and upload is not None:
        LOGGER.info("Storing report without image (%s)", outcome.reason)
    image_url = outcome.reference if isinstance(outcome, Artifact) else None

    record = ReportRecord(
        id=None,
        description=submission.description,
        incident_type=submission.incident_type,
        address=submission.address,
        latitude=submission.latitude,
        longitude=submission.longitude,
        image_url=image_url,
    )

    report_dal = ReportDAL(request.app.state.db)
    try:
        report_id = await report_dal.create_report(record)
    except Exception:  # pylint: disable=broad-exception-caught
        LOGGER.exception("Critical error inserting report into the database")
        if isinstance(outcome, Artifact):
            await request.app.state.image_normalizer.discard(outcome)
        return JSONResponse(status_code=500, content={"message": SAVE_FAILED_MESSAGE})

    if report_id is None:
        LOGGER.warning("Report saved, but the database did not return an id")
    else:
        LOGGER.info("Report saved with id %s", report_id)

    return JSONResponse(status_code=201, content={"message": SAVED_MESSAGE, "reportId": report_id})


async def get_report(request: Request, report_id: int) -> Dict[str, Any]:
    """Return a stored report as a dict.

    Raises:
        HTTPException(404) if the report does not exist.
    """
    report_dal = ReportDAL(request.app.state.db)
    record = await report_dal.get_report_by_id(int(report_id))
    if record is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return record.to_public_dict()


async def list_reports(request: Request, limit: int, offset: int) -> List[Dict[str, Any]]:
    """Return a page of stored reports, newest first."""
    report_dal = ReportDAL(request.app.state.db)
    records = await report_dal.list_reports(limit=limit, offset=offset)
    return [r.to_public_dict() for r in records]
