"""
conftest.py - Shared fixtures for the pipeline and publisher tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from publishers.base_publisher import BasePublisher, PublishOutcome, VideoSource
from work_item import Platform, StatusVector, WorkItem


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: tests that call real platform APIs")


class RecordingFeed:
    """In-memory feed that records every call into a shared log."""

    def __init__(self, calls, fail_update=False):
        self.calls = calls
        self.fail_update = fail_update
        self.saved = []
        self.finalized = []

    def download(self, item):
        self.calls.append(('download', item.video_file_name))
        return Path("/tmp/does-not-matter.mp4")

    def update_status(self, item):
        self.calls.append(('update_status', item.status.to_dict()))
        if self.fail_update:
            raise IOError("drive unavailable")
        self.saved.append(item.status.to_dict())

    def finalize(self, item):
        self.calls.append(('finalize', item.video_file_name))
        self.finalized.append(item.video_file_name)

    def get_public_url(self, item):
        self.calls.append(('get_public_url', item.video_file_name))
        return f"https://example.com/{item.video_file_id}"


class StubPublisher(BasePublisher):
    """Publisher whose upload result is scripted."""

    def __init__(self, platform, calls, result='success', enabled=True):
        super().__init__(config=None, enabled=enabled)
        self.PLATFORM = platform
        self.calls = calls
        self.result = result

    def upload(self, item, source):
        self.calls.append(('upload', self.PLATFORM.value))
        if self.result == 'url':
            self.calls.append(('used_url', source.public_url()))
        if self.result == 'error':
            raise RuntimeError(f"{self.PLATFORM.value} API error")
        if self.result == 'fail':
            return self._create_outcome(success=False, error="rejected")
        return self._create_outcome(success=True)


class RecordingNotifier:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send(self, batch):
        if self.fail:
            raise ConnectionError("smtp down")
        self.sent.append(batch)


@pytest.fixture
def calls():
    """Shared call-order log."""
    return []


@pytest.fixture
def feed(calls):
    return RecordingFeed(calls)


@pytest.fixture
def failing_feed(calls):
    """Feed whose status writes always fail."""
    return RecordingFeed(calls, fail_update=True)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def failing_notifier():
    return RecordingNotifier(fail=True)


@pytest.fixture
def make_item():
    """Factory for work items with a given status."""
    def _make(name="video_001", **status):
        return WorkItem(
            video_file_id=f"{name}-vid",
            json_file_id=f"{name}-json",
            video_file_name=f"{name}.mp4",
            json_file_name=f"{name}.json",
            title="Morning in Kyoto",
            description="A walk through Arashiyama at dawn.",
            tags=["kyoto", "travel"],
            status=StatusVector(**status),
            record={'title': "Morning in Kyoto", 'extra': 'kept'},
        )
    return _make


@pytest.fixture
def make_publishers(calls):
    """
    Factory for the four stub publishers in publish order.

    Args are per-platform results: 'success', 'fail', 'error', or 'url'
    (succeeds after reading the public URL).
    ``x_enabled=False`` builds X disabled.
    """
    def _make(youtube='success', tiktok='success', instagram='success', x='success', x_enabled=True):
        return [
            StubPublisher(Platform.YOUTUBE, calls, youtube),
            StubPublisher(Platform.TIKTOK, calls, tiktok),
            StubPublisher(Platform.INSTAGRAM, calls, instagram),
            StubPublisher(Platform.X, calls, x, enabled=x_enabled),
        ]
    return _make


@pytest.fixture
def source():
    return VideoSource(Path("/tmp/does-not-matter.mp4"))


@pytest.fixture
def outcome():
    """Factory for PublishOutcome."""
    def _make(platform, success=True, skipped=False, error=None):
        return PublishOutcome(platform=platform, success=success, skipped=skipped, error=error)
    return _make
