"""
base_publisher.py - Abstract Base Class for Publishers

Defines the common interface and shared skip handling for all
platform-specific publishers.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from work_item import Platform, WorkItem

logger = logging.getLogger(__name__)


@dataclass
class PublishOutcome:
    """
    Result of one publisher invocation.

    ``skipped`` means the platform was not attempted this run. It carries
    two reasons told apart by ``success``: already published
    (``success=True``) or platform disabled (``success=False``).
    """
    platform: Platform
    success: bool
    skipped: bool = False
    error: Optional[str] = None
    url: Optional[str] = None
    post_id: Optional[str] = None

    @property
    def label(self) -> str:
        if self.skipped:
            return "SKIPPED"
        return "SUCCESS" if self.success else "FAILED"

    def __str__(self) -> str:
        detail = f" ({self.error})" if self.error else ""
        return f"{self.platform.display_name}: {self.label}{detail}"


class VideoSource:
    """
    Where a publisher can read the video from.

    The local path is always available. The public URL is created on first
    request only, so the video is shared publicly only when a platform that
    needs it is actually attempted.
    """

    def __init__(self, local_path: Path, url_resolver: Optional[Callable[[], str]] = None):
        self.local_path = Path(local_path)
        self._url_resolver = url_resolver
        self._public_url: Optional[str] = None

    def public_url(self) -> str:
        if self._public_url is None:
            if self._url_resolver is None:
                raise RuntimeError("No public URL available for this video")
            self._public_url = self._url_resolver()
        return self._public_url


class BasePublisher(ABC):
    """
    Abstract base class for social media publishers.

    Subclasses implement ``upload``. ``publish`` wraps it with the skip
    rules and turns any exception into a failed outcome, so one platform's
    error never reaches the pipeline.
    """

    PLATFORM: Platform

    def __init__(self, config, settings=None, enabled: bool = True):
        """
        Initialize the publisher.

        Args:
            config: Platform credentials
            settings: PublishSettings with behaviour options
            enabled: False when the platform is administratively disabled
        """
        self.config = config
        self.settings = settings
        self.enabled = enabled

    @property
    def name(self) -> str:
        return self.PLATFORM.display_name

    def publish(self, item: WorkItem, source: VideoSource) -> PublishOutcome:
        """
        Publish the item unless it is disabled or already done.

        Args:
            item: Work item with the current status vector
            source: Local path / public URL of the video

        Returns:
            PublishOutcome for this platform
        """
        if not self.enabled:
            logger.info("%s: disabled, skipping", self.name)
            return self._create_outcome(success=False, skipped=True)

        if item.status.is_done(self.PLATFORM):
            logger.info("%s: already published, skipping", self.name)
            return self._create_outcome(success=True, skipped=True)

        logger.info("%s: starting upload...", self.name)
        try:
            return self.upload(item, source)
        except Exception as e:
            logger.exception("%s: upload failed", self.name)
            return self._create_outcome(success=False, error=str(e) or type(e).__name__)

    @abstractmethod
    def upload(self, item: WorkItem, source: VideoSource) -> PublishOutcome:
        """
        Upload the video to the platform.

        Raise on any failure; ``publish`` converts exceptions into a failed
        outcome.
        """

    def validate_video(self, video_path: Path) -> None:
        """
        Check that the local video exists and is an mp4/mov file.

        Raises:
            FileNotFoundError: If the file is missing
            ValueError: If the extension is not supported
        """
        path = Path(video_path)
        if not path.exists():
            raise FileNotFoundError(f"Video file not found: {video_path}")
        if path.suffix.lower() not in ['.mp4', '.mov']:
            raise ValueError(f"Invalid video format: {path.suffix}")

    def _create_outcome(
        self,
        success: bool,
        skipped: bool = False,
        error: Optional[str] = None,
        url: Optional[str] = None,
        post_id: Optional[str] = None,
    ) -> PublishOutcome:
        """Create a PublishOutcome with the platform auto-filled."""
        return PublishOutcome(
            platform=self.PLATFORM,
            success=success,
            skipped=skipped,
            error=error,
            url=url,
            post_id=post_id,
        )
