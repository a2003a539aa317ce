"""Validation of incoming report fields."""

from __future__ import annotations

from typing import Any, Mapping, Union

from pydantic import ValidationError

from models.report_submission import ReportSubmission, SubmissionRejected

REPORT_FIELDS = ("description", "incidentType", "address", "latitude", "longitude")


def validate_submission(fields: Mapping[str, Any]) -> Union[ReportSubmission, SubmissionRejected]:
    """Validate raw request fields into a `ReportSubmission`.

    Only the known report fields are considered; missing (None) values are
    dropped so required fields are reported as missing rather than mistyped.

    Returns:
        The validated submission, or a `SubmissionRejected` listing every
        offending field.
    """
    data = {name: fields[name] for name in REPORT_FIELDS if fields.get(name) is not None}
    try:
        return ReportSubmission.model_validate(data)
    except ValidationError as exc:
        errors = []
        for err in exc.errors():
            loc = err.get("loc") or ("body",)
            errors.append({"field": str(loc[0]), "message": err.get("msg", "Invalid value")})
        return SubmissionRejected(errors=errors)
