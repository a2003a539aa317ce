from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ReportRecord:
    """In-memory representation of a row in the `reports` table.

    Attributes:
        id: Primary key (None for new records).
        description: Free-text description of the incident.
        incident_type: Short free-form category, e.g. `road_damage`.
        address: Optional human-readable address.
        latitude: Decimal latitude of the incident.
        longitude: Decimal longitude of the incident.
        image_url: Reference to a normalized image artifact, or None.
        timestamp: ISO-8601 UTC time assigned by the database at insert.
    """

    id: Optional[int]
    description: str
    incident_type: str
    latitude: float
    longitude: float
    address: Optional[str] = None
    image_url: Optional[str] = None
    timestamp: Optional[str] = None

    def to_public_dict(self) -> Dict[str, Any]:
        """Return the record using the camelCase keys of the HTTP API."""
        return {
            "id": self.id,
            "description": self.description,
            "incidentType": self.incident_type,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "imageUrl": self.image_url,
            "timestamp": self.timestamp,
        }
