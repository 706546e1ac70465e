"""
publishers - Social Media Platform Publishers

This package contains platform-specific publishers for uploading videos
to YouTube, TikTok, Instagram and X.
"""

from .base_publisher import BasePublisher, PublishOutcome, VideoSource
from .youtube_publisher import YouTubePublisher
from .tiktok_publisher import TikTokPublisher
from .instagram_publisher import InstagramPublisher
from .x_publisher import XPublisher


def build_publishers(config) -> list:
    """Create the publishers in their fixed publish order."""
    settings = config.settings
    return [
        YouTubePublisher(config.youtube, settings),
        TikTokPublisher(config.tiktok, settings),
        InstagramPublisher(config.instagram, settings),
        XPublisher(config.x if config.x_enabled else None, settings),
    ]


__all__ = [
    'BasePublisher', 'PublishOutcome', 'VideoSource',
    'YouTubePublisher', 'TikTokPublisher', 'InstagramPublisher', 'XPublisher',
    'build_publishers',
]
