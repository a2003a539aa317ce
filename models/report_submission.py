"""Validated request payload for a new report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReportSubmission(BaseModel):
    """Report fields accepted by `POST /api/reports`.

    Wire names are camelCase (`incidentType`); Python attributes are snake_case.
    """

    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        allow_inf_nan=False,
        extra="ignore",
    )

    description: str = Field(min_length=1)
    incident_type: str = Field(alias="incidentType", min_length=1, max_length=255)
    address: Optional[str] = None
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)

    @field_validator("address")
    @classmethod
    def _blank_address_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


@dataclass
class SubmissionRejected:
    """Tagged validation failure; `errors` holds `{field, message}` pairs."""

    errors: List[Dict[str, str]] = field(default_factory=list)

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]
