"""
instagram_publisher.py - Instagram Reels Publisher

Publishes Reels to an Instagram Business account using the Graph API.
The Graph API cannot take a local file, so the video is passed by public URL.
Three steps: create container, wait for processing, publish.
"""

import logging
import time
from typing import Optional

import requests

from manager import InstagramConfig, PublishSettings
from utils.log import log_success
from work_item import Platform, WorkItem

from .base_publisher import BasePublisher, PublishOutcome, VideoSource

logger = logging.getLogger(__name__)


class InstagramError(RuntimeError):
    """Raised when a Graph API call fails or processing does not finish."""


class InstagramPublisher(BasePublisher):
    """
    Publishes Reels to Instagram via Graph API.

    Requirements:
    - Instagram Business/Creator account linked to a Facebook Page
    - Long-lived access token with instagram_content_publish permission
    """

    PLATFORM = Platform.INSTAGRAM

    # API configuration
    GRAPH_API_VERSION = "v21.0"
    GRAPH_API_URL = "https://graph.facebook.com/{version}"

    MAX_CAPTION_LENGTH = 2200
    REQUEST_TIMEOUT = 60

    def __init__(self, config: InstagramConfig, settings: PublishSettings = None, sleep=time.sleep):
        super().__init__(config, settings or PublishSettings())
        self._sleep = sleep

    @property
    def api_url(self) -> str:
        return self.GRAPH_API_URL.format(version=self.GRAPH_API_VERSION)

    def upload(self, item: WorkItem, source: VideoSource) -> PublishOutcome:
        """Publish the video at the source's public URL as a Reel."""
        video_url = source.public_url()
        caption = self._build_caption(item)

        # Step 1: Create media container
        logger.info("Instagram: creating media container...")
        container_id = self._create_container(video_url, caption)
        logger.info("Instagram: container created (Container ID: %s)", container_id)

        # Step 2: Wait for processing
        logger.info("Instagram: waiting for video processing...")
        self._wait_for_container(container_id)

        # Step 3: Publish the container
        logger.info("Instagram: publishing Reel...")
        media_id = self._publish_container(container_id)
        log_success(logger, "Instagram: Reel published (Media ID: %s)", media_id)

        return self._create_outcome(success=True, post_id=media_id)

    def _create_container(self, video_url: str, caption: str) -> str:
        response = requests.post(
            f"{self.api_url}/{self.config.account_id}/media",
            data={
                'media_type': 'REELS',
                'video_url': video_url,
                'caption': caption,
                'share_to_feed': 'true',
                'access_token': self.config.access_token,
            },
            timeout=self.REQUEST_TIMEOUT,
        )
        if response.status_code != 200:
            raise InstagramError(f"Container creation failed: {response.text}")

        container_id = response.json().get('id')
        if not container_id:
            raise InstagramError("Container creation returned no ID")
        return container_id

    def _wait_for_container(self, container_id: str) -> None:
        """
        Poll the container until processing finishes.

        Bounded by ``instagram_max_status_checks`` polls at a fixed interval.

        Raises:
            InstagramError: If processing reports ERROR or never finishes
        """
        max_checks = self.settings.instagram_max_status_checks

        for attempt in range(1, max_checks + 1):
            self._sleep(self.settings.instagram_poll_interval_seconds)

            response = requests.get(
                f"{self.api_url}/{container_id}",
                params={
                    'fields': 'status_code',
                    'access_token': self.config.access_token,
                },
                timeout=self.REQUEST_TIMEOUT,
            )
            status_code = self._status_code(response)
            logger.info("Instagram: status check (%d/%d): %s", attempt, max_checks, status_code)

            if status_code == 'FINISHED':
                return
            if status_code == 'ERROR':
                raise InstagramError("Media container processing failed")

        raise InstagramError("Media container processing timed out")

    @staticmethod
    def _status_code(response) -> Optional[str]:
        if response.status_code != 200:
            return None
        return response.json().get('status_code')

    def _publish_container(self, container_id: str) -> str:
        response = requests.post(
            f"{self.api_url}/{self.config.account_id}/media_publish",
            data={
                'creation_id': container_id,
                'access_token': self.config.access_token,
            },
            timeout=self.REQUEST_TIMEOUT,
        )
        if response.status_code != 200:
            raise InstagramError(f"Publish failed: {response.text}")

        media_id = response.json().get('id')
        if not media_id:
            raise InstagramError("Publish returned no media ID")
        return media_id

    def _build_caption(self, item: WorkItem) -> str:
        caption = f"{item.title}\n\n{item.description}"
        return caption[:self.MAX_CAPTION_LENGTH]
