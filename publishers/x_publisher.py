"""
x_publisher.py - X (Twitter) Video Publisher

Posts the video with title and description as text. Media goes through the
chunked v1.1 upload endpoint, the post itself through API v2. Uses OAuth 1.0a
user context.

X is optional: without a complete credential set the publisher is built
disabled and reports every item as skipped.
"""

import logging
import time
from pathlib import Path
from typing import Optional

import requests
from requests_oauthlib import OAuth1

from manager import PublishSettings, XConfig
from utils.log import log_success
from work_item import Platform, WorkItem

from .base_publisher import BasePublisher, PublishOutcome, VideoSource

logger = logging.getLogger(__name__)

UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
API_BASE = "https://api.x.com/2"


class XError(RuntimeError):
    """Raised when an X API call fails."""


class XPublisher(BasePublisher):
    """Publishes a video post to X."""

    PLATFORM = Platform.X

    MAX_TEXT_LENGTH = 280
    CHUNK_SIZE = 4 * 1024 * 1024
    REQUEST_TIMEOUT = 60

    def __init__(self, config: Optional[XConfig], settings: PublishSettings = None, sleep=time.sleep):
        super().__init__(config, settings or PublishSettings(), enabled=config is not None)
        self._sleep = sleep
        self.auth = None
        if config is not None:
            self.auth = OAuth1(
                config.api_key,
                config.api_secret,
                config.access_token,
                config.access_token_secret,
            )

    def upload(self, item: WorkItem, source: VideoSource) -> PublishOutcome:
        """Upload the video and post it."""
        self.validate_video(source.local_path)

        # Step 1: Upload media
        logger.info("X: uploading video...")
        media_id = self._upload_media(source.local_path)
        logger.info("X: media upload complete (Media ID: %s)", media_id)

        # Step 2: Post with the media attached
        logger.info("X: posting...")
        tweet_id = self._post_tweet(self._build_text(item), media_id)
        tweet_url = f"https://x.com/i/status/{tweet_id}"
        log_success(logger, "X: posted (Tweet ID: %s) %s", tweet_id, tweet_url)

        return self._create_outcome(success=True, url=tweet_url, post_id=tweet_id)

    def _build_text(self, item: WorkItem) -> str:
        text = f"{item.title}\n\n{item.description}"
        if len(text) > self.MAX_TEXT_LENGTH:
            text = text[:self.MAX_TEXT_LENGTH - 3] + '...'
        return text

    def _upload_media(self, video_path: Path) -> str:
        """Chunked upload: INIT, APPEND..., FINALIZE, then wait for processing."""
        total_bytes = Path(video_path).stat().st_size

        init = self._media_request(data={
            'command': 'INIT',
            'total_bytes': total_bytes,
            'media_type': 'video/mp4',
            'media_category': 'tweet_video',
        })
        media_id = init['media_id_string']

        with open(video_path, 'rb') as f:
            segment_index = 0
            while True:
                chunk = f.read(self.CHUNK_SIZE)
                if not chunk:
                    break
                self._media_request(
                    data={'command': 'APPEND', 'media_id': media_id, 'segment_index': segment_index},
                    files={'media': chunk},
                )
                segment_index += 1

        finalize = self._media_request(data={'command': 'FINALIZE', 'media_id': media_id})
        self._wait_for_processing(media_id, finalize.get('processing_info'))
        return media_id

    def _media_request(self, data: dict, files: dict = None) -> dict:
        response = requests.post(
            UPLOAD_URL,
            data=data,
            files=files,
            auth=self.auth,
            timeout=self.REQUEST_TIMEOUT,
        )
        if response.status_code not in (200, 201, 202, 204):
            raise XError(f"Media {data['command']} failed (HTTP {response.status_code}): {response.text}")
        if not response.content:
            return {}
        return response.json()

    def _wait_for_processing(self, media_id: str, processing_info: Optional[dict]) -> None:
        """Poll STATUS until the video is processed (bounded by x_max_status_checks)."""
        checks = 0
        while processing_info:
            state = processing_info.get('state')
            if state == 'succeeded':
                return
            if state == 'failed':
                error = processing_info.get('error', {})
                raise XError(f"Media processing failed: {error.get('message', error)}")

            checks += 1
            if checks > self.settings.x_max_status_checks:
                raise XError("Media processing timed out")

            self._sleep(processing_info.get('check_after_secs', 5))
            response = requests.get(
                UPLOAD_URL,
                params={'command': 'STATUS', 'media_id': media_id},
                auth=self.auth,
                timeout=self.REQUEST_TIMEOUT,
            )
            if response.status_code != 200:
                raise XError(f"Media STATUS failed (HTTP {response.status_code}): {response.text}")
            processing_info = response.json().get('processing_info')

    def _post_tweet(self, text: str, media_id: str) -> str:
        response = requests.post(
            f"{API_BASE}/tweets",
            json={'text': text, 'media': {'media_ids': [media_id]}},
            auth=self.auth,
            timeout=self.REQUEST_TIMEOUT,
        )
        if response.status_code != 201:
            error_detail = response.text
            try:
                error_json = response.json()
                error_detail = error_json.get('detail') or str(error_json.get('errors', error_detail))
            except ValueError:
                pass
            raise XError(f"Post failed (HTTP {response.status_code}): {error_detail}")

        return response.json()['data']['id']
