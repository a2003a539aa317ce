"""Outcome of the Image Normalizer stage."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union


@dataclass(frozen=True)
class Artifact:
    """A normalized image written to storage.

    `reference` is the value stored in `reports.image_url`.
    """

    filename: str
    path: Path
    reference: str


@dataclass(frozen=True)
class Skipped:
    """No artifact was produced; the report proceeds without an image."""

    reason: str


ImageOutcome = Union[Artifact, Skipped]
