"""Validation and construction of user-authored activities.

Nothing here touches storage or the database. Every check runs before the
caller mutates the trip or uploads anything.
"""

from __future__ import annotations

import base64
import binascii
import copy
import re
import time
from dataclasses import dataclass
from typing import Optional

from agents.bookings.errors import ValidationError
from agents.bookings.models import Activity, Trip, parse_date
from storage import MIME_TO_EXT

MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_FILES = 5
MAX_NAME_LENGTH = 100

# Fields a payload may change, as (payload key, attribute)
UPDATABLE_FIELDS = [
    ("startTime", "start_time"),
    ("endTime", "end_time"),
    ("location", "location"),
    ("category", "category"),
]


@dataclass
class AttachmentUpload:
    """A decoded file waiting to be stored."""

    name: str
    type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


def _check_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Name cannot be empty")
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Name must be {MAX_NAME_LENGTH} characters or less")
    return name


def _check_date(value) -> str:
    if not value or parse_date(value) is None:
        raise ValidationError("date must be a YYYY-MM-DD string")
    return value[:10]


def _clean_urls(urls) -> list[str]:
    return [u.strip() for u in urls or [] if isinstance(u, str) and u.strip()]


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


def validate_activity_payload(payload: Optional[dict]) -> None:
    """Reject a create payload missing its name or date."""
    if not payload or not payload.get("name") or not payload.get("date"):
        raise ValidationError("name and date are required")
    _check_name(payload["name"])
    _check_date(payload["date"])


def decode_attachments(files: Optional[list]) -> list[AttachmentUpload]:
    """Decode ``[{name, type, data(base64)}]`` and check type and size."""
    uploads = []
    for file in files or []:
        if not isinstance(file, dict):
            raise ValidationError("Invalid attachment")
        name = file.get("name") or "attachment"
        mime_type = file.get("type")
        if mime_type not in MIME_TO_EXT:
            raise ValidationError(f"Unsupported file type: {mime_type}")
        try:
            content = base64.b64decode(file.get("data") or "", validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError(f"File {name} is not valid base64")
        if len(content) > MAX_FILE_SIZE:
            raise ValidationError(f"File {name} exceeds 10MB limit")
        uploads.append(AttachmentUpload(name=name, type=mime_type, content=content))
    return uploads


def check_attachment_count(existing: int, incoming: int) -> None:
    if existing + incoming > MAX_FILES:
        raise ValidationError(f"Maximum {MAX_FILES} files allowed")


def next_attachment_index(activity: Activity) -> int:
    """One past the highest ``-<n>.<ext>`` index among stored attachments."""
    index = 0
    for attachment in activity.attachments:
        match = re.search(r"-(\d+)\.\w+$", attachment.path or "")
        if match:
            index = max(index, int(match.group(1)) + 1)
    return index


def new_activity_id(trip: Trip) -> str:
    """``activity-<ms timestamp>``, bumped until unused in the trip."""
    stamp = int(time.time() * 1000)
    while trip.find_activity(f"activity-{stamp}") is not None:
        stamp += 1
    return f"activity-{stamp}"


def build_activity(payload: dict, activity_id: str) -> Activity:
    """A new Activity from a validated create payload (no attachments yet)."""
    validate_activity_payload(payload)
    return Activity(
        id=activity_id,
        name=_check_name(payload["name"]),
        date=_check_date(payload["date"]),
        description=_text(payload.get("description")),
        address=_text(payload.get("address")),
        start_time=payload.get("startTime") or None,
        end_time=payload.get("endTime") or None,
        urls=_clean_urls(payload.get("urls")),
        location=copy.deepcopy(payload.get("location")) or None,
        category=payload.get("category") or None,
    )


def apply_activity_update(activity: Activity, payload: Optional[dict]) -> Activity:
    """Return a copy of ``activity`` with the payload's fields applied.

    Only keys present in the payload change. Validation errors leave the
    original untouched.
    """
    updated = copy.deepcopy(activity)
    if not payload:
        return updated

    if "name" in payload:
        updated.name = _check_name(payload["name"])
    if "date" in payload:
        updated.date = _check_date(payload["date"])
    if "description" in payload:
        updated.description = _text(payload["description"])
    if "address" in payload:
        updated.address = _text(payload["address"])
    if "urls" in payload:
        updated.urls = _clean_urls(payload["urls"])
    for key, attr in UPDATABLE_FIELDS:
        if key in payload:
            setattr(updated, attr, copy.deepcopy(payload[key]) or None)
    return updated
