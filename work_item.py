"""
work_item.py - Work Item Data Model

Defines the unit of work handled by the publish pipeline: one video in the
pending Drive folder paired with its JSON sidecar, plus the per-platform
upload status stored inside that sidecar.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class Platform(Enum):
    """Known publish destinations."""
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"
    X = "x"

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self]


DISPLAY_NAMES = {
    Platform.YOUTUBE: "YouTube",
    Platform.TIKTOK: "TikTok",
    Platform.INSTAGRAM: "Instagram",
    Platform.X: "X (Twitter)",
}

# Publish order is fixed
PLATFORM_ORDER = (Platform.YOUTUBE, Platform.TIKTOK, Platform.INSTAGRAM, Platform.X)

# X can be switched off by leaving its credentials out
OPTIONAL_PLATFORM = Platform.X


class MetadataError(ValueError):
    """Raised when a sidecar JSON record is malformed."""


@dataclass
class StatusVector:
    """Per-platform "already published" flags for one work item."""
    youtube: bool = False
    tiktok: bool = False
    instagram: bool = False
    x: bool = False

    def is_done(self, platform: Platform) -> bool:
        return getattr(self, platform.value)

    def mark_done(self, platform: Platform) -> None:
        setattr(self, platform.value, True)

    def all_done(self) -> bool:
        return all(self.is_done(p) for p in PLATFORM_ORDER)

    def to_dict(self) -> Dict[str, bool]:
        return {p.value: self.is_done(p) for p in PLATFORM_ORDER}

    @classmethod
    def from_dict(cls, data: Any) -> "StatusVector":
        """
        Build a status vector from the sidecar's ``upload_status`` object.

        Every known platform must be present with a boolean value. Missing
        or non-boolean fields are rejected, never defaulted to False.

        Raises:
            MetadataError: If the object is not a mapping or a flag is
                missing or not a bool
        """
        if not isinstance(data, dict):
            raise MetadataError('"upload_status" must be an object')

        flags = {}
        for platform in PLATFORM_ORDER:
            if platform.value not in data:
                raise MetadataError(f'"upload_status.{platform.value}" is missing')
            value = data[platform.value]
            if not isinstance(value, bool):
                raise MetadataError(
                    f'"upload_status.{platform.value}" must be true or false, got {value!r}'
                )
            flags[platform.value] = value
        return cls(**flags)


@dataclass
class WorkItem:
    """One video + sidecar pair waiting in the pending folder."""
    video_file_id: str
    json_file_id: str
    video_file_name: str
    json_file_name: str
    title: str
    description: str
    tags: List[str] = field(default_factory=list)
    status: StatusVector = field(default_factory=StatusVector)

    # Original sidecar content; unknown keys are written back untouched
    record: Dict[str, Any] = field(default_factory=dict, repr=False)

    def to_record(self) -> Dict[str, Any]:
        """Return the sidecar content with the current upload status."""
        record = copy.deepcopy(self.record)
        record.update({
            'title': self.title,
            'description': self.description,
            'tags': list(self.tags),
            'upload_status': self.status.to_dict(),
        })
        return record

    def __str__(self) -> str:
        return f"{self.video_file_name} ({self.title})"


def parse_metadata(data: Any) -> Dict[str, Any]:
    """
    Validate a decoded sidecar record.

    Args:
        data: Decoded JSON content

    Returns:
        Dict with ``title``, ``description``, ``tags`` and ``status``

    Raises:
        MetadataError: If any required field is missing or has the wrong type
    """
    if not isinstance(data, dict):
        raise MetadataError("metadata must be a JSON object")

    title = data.get('title')
    if not isinstance(title, str) or not title.strip():
        raise MetadataError('"title" is missing or not a string')

    description = data.get('description')
    if not isinstance(description, str) or not description.strip():
        raise MetadataError('"description" is missing or not a string')

    tags = data.get('tags')
    if not isinstance(tags, list):
        raise MetadataError('"tags" is not an array')
    if not all(isinstance(t, str) for t in tags):
        raise MetadataError('"tags" must only contain strings')

    status = StatusVector.from_dict(data.get('upload_status'))

    return {
        'title': title,
        'description': description,
        'tags': tags,
        'status': status,
    }


def build_work_item(
    video_file: Dict[str, str],
    json_file: Dict[str, str],
    data: Any,
) -> WorkItem:
    """
    Create a WorkItem from a Drive file pair and its decoded sidecar.

    Args:
        video_file: Drive file resource with ``id`` and ``name``
        json_file: Drive file resource with ``id`` and ``name``
        data: Decoded sidecar JSON

    Raises:
        MetadataError: If the sidecar is malformed
    """
    fields = parse_metadata(data)
    return WorkItem(
        video_file_id=video_file['id'],
        json_file_id=json_file['id'],
        video_file_name=video_file['name'],
        json_file_name=json_file['name'],
        record=copy.deepcopy(data),
        **fields,
    )
