"""
youtube_publisher.py - YouTube Shorts Publisher

Uploads videos to YouTube as Shorts using the YouTube Data API v3.
Authenticates with a stored OAuth refresh token.
"""

import logging

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.http import MediaFileUpload

from manager import PublishSettings, YouTubeConfig
from utils.log import log_success
from work_item import Platform, WorkItem

from .base_publisher import BasePublisher, PublishOutcome, VideoSource

logger = logging.getLogger(__name__)


class YouTubePublisher(BasePublisher):
    """
    Publishes videos to YouTube Shorts via Data API v3.

    Requirements:
    - Google Cloud Project with YouTube Data API v3 enabled
    - OAuth client ID/secret and a refresh token with youtube.upload scope
    """

    PLATFORM = Platform.YOUTUBE

    # API configuration
    API_SERVICE_NAME = "youtube"
    API_VERSION = "v3"
    TOKEN_URI = "https://oauth2.googleapis.com/token"
    SCOPES = ["https://www.googleapis.com/auth/youtube.upload"]

    # YouTube limits
    MAX_TITLE_LENGTH = 100
    MAX_DESCRIPTION_LENGTH = 5000
    MAX_TAGS_CHARS = 500

    def __init__(self, config: YouTubeConfig, settings: PublishSettings = None):
        super().__init__(config, settings or PublishSettings())
        self.youtube = None  # API client (built on first upload)

    def authenticate(self):
        """Build the API client from the refresh token."""
        credentials = Credentials(
            token=None,
            refresh_token=self.config.refresh_token,
            token_uri=self.TOKEN_URI,
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            scopes=self.SCOPES,
        )
        credentials.refresh(Request())

        self.youtube = build(
            self.API_SERVICE_NAME,
            self.API_VERSION,
            credentials=credentials,
            cache_discovery=False,
        )
        logger.debug("YouTube: API authenticated")
        return self.youtube

    def upload(self, item: WorkItem, source: VideoSource) -> PublishOutcome:
        """Upload the local video as a Short."""
        self.validate_video(source.local_path)

        if self.youtube is None:
            self.authenticate()

        body = {
            'snippet': {
                'title': self._build_title(item),
                'description': item.description[:self.MAX_DESCRIPTION_LENGTH],
                'tags': self._build_tags(item),
                'categoryId': self.settings.youtube_category_id,
                'defaultLanguage': self.settings.youtube_default_language,
                'defaultAudioLanguage': self.settings.youtube_default_language,
            },
            'status': {
                'privacyStatus': self.settings.youtube_privacy_status,
                'selfDeclaredMadeForKids': False,
            },
        }

        media = MediaFileUpload(
            str(source.local_path),
            mimetype='video/mp4',
            resumable=True,
            chunksize=1024 * 1024,  # 1MB chunks
        )

        request = self.youtube.videos().insert(
            part='snippet,status',
            body=body,
            media_body=media,
        )

        response = None
        while response is None:
            status, response = request.next_chunk()
            if status:
                logger.info("YouTube: upload progress %d%%", int(status.progress() * 100))

        video_id = response['id']
        video_url = f"https://youtube.com/shorts/{video_id}"
        log_success(logger, "YouTube: upload complete (Video ID: %s) %s", video_id, video_url)

        return self._create_outcome(success=True, url=video_url, post_id=video_id)

    def _build_title(self, item: WorkItem) -> str:
        return item.title[:self.MAX_TITLE_LENGTH]

    def _build_tags(self, item: WorkItem) -> list:
        """Deduplicate tags and keep them within the character limit."""
        tags = []
        seen = set()
        char_count = 0

        for tag in item.tags:
            tag_lower = tag.lower()
            if tag_lower in seen:
                continue
            seen.add(tag_lower)

            tag_chars = len(tag) + 1  # +1 for comma separator
            if char_count + tag_chars > self.MAX_TAGS_CHARS:
                break
            tags.append(tag)
            char_count += tag_chars

        return tags
