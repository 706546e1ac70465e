"""
tiktok_publisher.py - TikTok Video Publisher

Uploads videos to TikTok using the Content Posting API (Direct Post,
FILE_UPLOAD source). Exchanges the stored refresh token for an access
token on every run.
"""

import logging
import time
from pathlib import Path
from typing import Dict, Optional

import requests

from manager import PublishSettings, TikTokConfig
from utils.log import log_success
from work_item import Platform, WorkItem

from .base_publisher import BasePublisher, PublishOutcome, VideoSource

logger = logging.getLogger(__name__)


class TikTokError(RuntimeError):
    """Raised when a TikTok API call is rejected."""


class TikTokPublisher(BasePublisher):
    """
    Publishes videos to TikTok via Content Posting API.

    Requirements:
    - TikTok for Developers app with Content Posting API enabled
    - Refresh token authorized for video.publish
    """

    PLATFORM = Platform.TIKTOK

    # API endpoints
    API_BASE = "https://open.tiktokapis.com/v2"
    TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"

    MAX_TITLE_LENGTH = 2200
    REQUEST_TIMEOUT = 60

    def __init__(self, config: TikTokConfig, settings: PublishSettings = None, sleep=time.sleep):
        super().__init__(config, settings or PublishSettings())
        self.session = requests.Session()
        self._sleep = sleep

    def get_access_token(self) -> str:
        """Exchange the refresh token for an access token."""
        logger.info("TikTok: fetching access token...")
        response = self.session.post(
            self.TOKEN_URL,
            data={
                'client_key': self.config.client_key,
                'client_secret': self.config.client_secret,
                'grant_type': 'refresh_token',
                'refresh_token': self.config.refresh_token,
            },
            headers={'Content-Type': 'application/x-www-form-urlencoded'},
            timeout=self.REQUEST_TIMEOUT,
        )
        data = response.json()

        access_token = data.get('access_token')
        if not access_token:
            raise TikTokError(f"Token refresh failed: {data}")
        return access_token

    def upload(self, item: WorkItem, source: VideoSource) -> PublishOutcome:
        """Direct Post the local video."""
        self.validate_video(source.local_path)
        access_token = self.get_access_token()

        # Step 1: Initialize upload
        init_data = self._init_upload(access_token, source.local_path, item)
        publish_id = init_data.get('publish_id')
        upload_url = init_data.get('upload_url')
        if not upload_url:
            raise TikTokError("No upload URL received")

        # Step 2: Upload video file
        logger.info("TikTok: PublishID=%s, uploading video...", publish_id)
        self._upload_video_file(upload_url, source.local_path)

        # Step 3: Check publish status
        logger.info("TikTok: processing video...")
        video_id = self._check_publish_status(access_token, publish_id)

        log_success(logger, "TikTok: upload complete (Publish ID: %s)", publish_id)
        return self._create_outcome(success=True, post_id=video_id or publish_id)

    def _init_upload(self, access_token: str, video_path: Path, item: WorkItem) -> Dict:
        """Initialize Direct Post and return the ``data`` block."""
        file_size = Path(video_path).stat().st_size

        body = {
            'post_info': {
                'title': item.title[:self.MAX_TITLE_LENGTH],
                'privacy_level': self.settings.tiktok_privacy_level,
                'disable_duet': False,
                'disable_comment': False,
                'disable_stitch': False,
                'video_cover_timestamp_ms': 0,
            },
            'source_info': {
                'source': 'FILE_UPLOAD',
                'video_size': file_size,
                'chunk_size': file_size,  # Single chunk
                'total_chunk_count': 1,
            },
        }

        logger.info("TikTok: initializing Direct Post...")
        response = self.session.post(
            f"{self.API_BASE}/post/publish/video/init/",
            headers={
                'Authorization': f'Bearer {access_token}',
                'Content-Type': 'application/json; charset=UTF-8',
            },
            json=body,
            timeout=self.REQUEST_TIMEOUT,
        )
        data = response.json()

        error = data.get('error', {})
        if error.get('code') != 'ok':
            raise TikTokError(f"Init failed: {error}")

        return data.get('data', {})

    def _upload_video_file(self, upload_url: str, video_path: Path) -> None:
        """PUT the whole file to TikTok's upload URL."""
        file_size = Path(video_path).stat().st_size

        with open(video_path, 'rb') as f:
            response = self.session.put(
                upload_url,
                data=f,
                headers={
                    'Content-Type': 'video/mp4',
                    'Content-Length': str(file_size),
                    'Content-Range': f'bytes 0-{file_size - 1}/{file_size}',
                },
                timeout=None,
            )

        if response.status_code not in (200, 201):
            raise TikTokError(f"Video upload failed: {response.status_code} {response.text[:500]}")

    def _check_publish_status(self, access_token: str, publish_id: str) -> Optional[str]:
        """
        Poll the publish status until TikTok reports a result.

        Bounded by ``tiktok_max_status_checks``. The bytes are already
        accepted at this point, so running out of checks only logs a warning
        and the post counts as published.

        Returns:
            The public video ID when TikTok reports one

        Raises:
            TikTokError: If TikTok reports FAILED
        """
        max_checks = self.settings.tiktok_max_status_checks

        for attempt in range(1, max_checks + 1):
            self._sleep(self.settings.tiktok_poll_interval_seconds)

            response = self.session.post(
                f"{self.API_BASE}/post/publish/status/fetch/",
                headers={
                    'Authorization': f'Bearer {access_token}',
                    'Content-Type': 'application/json; charset=UTF-8',
                },
                json={'publish_id': publish_id},
                timeout=self.REQUEST_TIMEOUT,
            )
            if response.status_code != 200:
                logger.warning("TikTok: status check HTTP %d", response.status_code)
                continue

            data = response.json().get('data', {})
            status = data.get('status')
            logger.info("TikTok: status check (%d/%d): %s", attempt, max_checks, status)

            if status == 'PUBLISH_COMPLETE':
                post_ids = data.get('publicaly_available_post_id') or []
                return str(post_ids[0]) if post_ids else None
            if status == 'FAILED':
                raise TikTokError(f"Publish failed: {data.get('fail_reason', 'unknown')}")

        logger.warning("TikTok: no final status after %d checks (Publish ID: %s)", max_checks, publish_id)
        return None
