"""
test_pipeline.py - Tests for the publish pipeline

Covers overall-success computation, eager status writes, failure isolation
between platforms, idempotent re-runs and item disposition.
"""

import itertools
import logging

import pytest

from pipeline import BatchOutcome, PublishPipeline, compute_all_success
from work_item import Platform

YT, TT, IG, X = Platform.YOUTUBE, Platform.TIKTOK, Platform.INSTAGRAM, Platform.X


def make_pipeline(feed, publishers, notifier, x_enabled=True):
    return PublishPipeline(
        feed=feed,
        publishers=publishers,
        notifier=notifier,
        optional_enabled=x_enabled,
        logger=logging.getLogger("test_pipeline"),
    )


# ============================================
# OVERALL SUCCESS
# ============================================

class TestComputeAllSuccess:

    def test_all_success_with_x_disabled(self, outcome):
        results = [outcome(YT), outcome(TT), outcome(IG), outcome(X, success=False, skipped=True)]
        assert compute_all_success(results, optional_enabled=False) is True

    def test_one_failure_fails_item(self, outcome):
        results = [
            outcome(YT), outcome(TT, success=False, error="API Error"), outcome(IG),
            outcome(X, success=False, skipped=True),
        ]
        assert compute_all_success(results, optional_enabled=False) is False

    def test_everything_skipped_is_success(self, outcome):
        results = [
            outcome(YT, skipped=True), outcome(TT, skipped=True), outcome(IG, skipped=True),
            outcome(X, success=False, skipped=True),
        ]
        assert compute_all_success(results, optional_enabled=False) is True

    def test_x_failure_counts_when_enabled(self, outcome):
        results = [outcome(YT), outcome(TT), outcome(IG), outcome(X, success=False, error="Auth Error")]
        assert compute_all_success(results, optional_enabled=True) is False

    def test_x_failure_ignored_when_disabled(self, outcome):
        results = [outcome(YT), outcome(TT), outcome(IG), outcome(X, success=False)]
        assert compute_all_success(results, optional_enabled=False) is True

    def test_partial_resume_is_success(self, outcome):
        results = [outcome(YT, skipped=True), outcome(TT), outcome(IG), outcome(X, success=False, skipped=True)]
        assert compute_all_success(results, optional_enabled=False) is True

    def test_empty_is_success(self):
        assert compute_all_success([], optional_enabled=True) is True


# ============================================
# RUN ONE ITEM
# ============================================

class TestRunOne:

    def test_full_success_finalizes_once(self, feed, notifier, make_item, make_publishers, source):
        item = make_item()
        pipeline = make_pipeline(feed, make_publishers(), notifier)

        batch = pipeline.run_one(item, source)

        assert batch.all_success is True
        assert feed.finalized == [item.video_file_name]
        assert item.status.all_done()
        assert [o.platform for o in batch.outcomes] == [YT, TT, IG, X]

    def test_failure_keeps_item_pending(self, feed, notifier, make_item, make_publishers, source):
        item = make_item()
        pipeline = make_pipeline(feed, make_publishers(tiktok='fail'), notifier)

        batch = pipeline.run_one(item, source)

        assert batch.all_success is False
        assert feed.finalized == []
        assert item.status.to_dict() == {'youtube': True, 'tiktok': False, 'instagram': True, 'x': True}

    def test_status_written_before_next_platform(self, calls, feed, notifier, make_item, make_publishers, source):
        item = make_item()
        pipeline = make_pipeline(feed, make_publishers(), notifier)

        pipeline.run_one(item, source)

        assert calls == [
            ('upload', 'youtube'),
            ('update_status', {'youtube': True, 'tiktok': False, 'instagram': False, 'x': False}),
            ('upload', 'tiktok'),
            ('update_status', {'youtube': True, 'tiktok': True, 'instagram': False, 'x': False}),
            ('upload', 'instagram'),
            ('update_status', {'youtube': True, 'tiktok': True, 'instagram': True, 'x': False}),
            ('upload', 'x'),
            ('update_status', {'youtube': True, 'tiktok': True, 'instagram': True, 'x': True}),
            ('finalize', item.video_file_name),
        ]

    def test_no_status_write_on_failure_or_skip(self, feed, notifier, make_item, make_publishers, source):
        item = make_item(youtube=True)
        pipeline = make_pipeline(feed, make_publishers(tiktok='error', instagram='fail', x_enabled=False), notifier)

        batch = pipeline.run_one(item, source)

        assert feed.saved == []
        assert [o.label for o in batch.outcomes] == ['SKIPPED', 'FAILED', 'FAILED', 'SKIPPED']
        assert item.status.to_dict() == {'youtube': True, 'tiktok': False, 'instagram': False, 'x': False}

    @pytest.mark.parametrize("results", list(itertools.product(['success', 'error'], repeat=4)))
    def test_failure_never_blocks_later_platforms(self, calls, feed, notifier, make_item, make_publishers,
                                                  source, results):
        item = make_item()
        pipeline = make_pipeline(feed, make_publishers(*results), notifier)

        batch = pipeline.run_one(item, source)

        uploads = [c[1] for c in calls if c[0] == 'upload']
        assert uploads == ['youtube', 'tiktok', 'instagram', 'x']
        assert len(batch.outcomes) == 4
        assert batch.all_success is (set(results) == {'success'})

    def test_rerun_after_full_success_is_idempotent(self, calls, feed, notifier, make_item, make_publishers, source):
        item = make_item(youtube=True, tiktok=True, instagram=True, x=True)
        pipeline = make_pipeline(feed, make_publishers(), notifier)

        batch = pipeline.run_one(item, source)

        assert all(o.skipped and o.success for o in batch.outcomes)
        assert batch.all_success is True
        assert not any(c[0] in ('upload', 'update_status') for c in calls)

    def test_resume_only_attempts_missing_platforms(self, calls, feed, notifier, make_item, make_publishers, source):
        item = make_item(youtube=True, tiktok=True)
        pipeline = make_pipeline(feed, make_publishers(x_enabled=False), notifier, x_enabled=False)

        batch = pipeline.run_one(item, source)

        assert [c[1] for c in calls if c[0] == 'upload'] == ['instagram']
        assert batch.all_success is True
        assert batch.x_enabled is False
        assert item.status.x is False
        assert feed.finalized == [item.video_file_name]

    def test_x_disabled_all_skipped(self, feed, notifier, make_item, make_publishers, source):
        item = make_item(youtube=True, tiktok=True, instagram=True)
        pipeline = make_pipeline(feed, make_publishers(x_enabled=False), notifier, x_enabled=False)

        batch = pipeline.run_one(item, source)

        x_outcome = batch.outcomes[-1]
        assert (x_outcome.success, x_outcome.skipped) == (False, True)
        assert batch.all_success is True

    def test_report_sent_with_outcomes(self, feed, notifier, make_item, make_publishers, source):
        item = make_item()
        pipeline = make_pipeline(feed, make_publishers(instagram='fail'), notifier)

        batch = pipeline.run_one(item, source)

        assert notifier.sent == [batch]
        assert isinstance(batch, BatchOutcome)
        assert batch.status is item.status

    def test_notifier_failure_does_not_change_disposition(self, feed, failing_notifier, make_item,
                                                          make_publishers, source):
        item = make_item()
        pipeline = make_pipeline(feed, make_publishers(), failing_notifier)

        batch = pipeline.run_one(item, source)

        assert batch.all_success is True
        assert feed.finalized == [item.video_file_name]

    def test_status_write_failure_propagates(self, calls, failing_feed, notifier, make_item,
                                             make_publishers, source):
        pipeline = make_pipeline(failing_feed, make_publishers(), notifier)

        with pytest.raises(IOError):
            pipeline.run_one(make_item(), source)

        assert [c[1] for c in calls if c[0] == 'upload'] == ['youtube']
        assert failing_feed.finalized == []
        assert notifier.sent == []


# ============================================
# BATCH
# ============================================

class TestRun:

    def test_item_error_does_not_abort_batch(self, calls, feed, notifier, make_item, make_publishers):
        first, second = make_item("first"), make_item("second")
        original_download = feed.download

        def flaky_download(item):
            if item is first:
                raise ConnectionError("download failed")
            return original_download(item)

        feed.download = flaky_download
        pipeline = make_pipeline(feed, make_publishers(), notifier)

        results = pipeline.run([first, second])

        assert [r.item for r in results] == [second]
        assert feed.finalized == ["second.mp4"]

    def test_public_url_requested_lazily(self, calls, feed, notifier, make_item, make_publishers):
        pipeline = make_pipeline(feed, make_publishers(instagram='url'), notifier)

        pipeline.run([make_item("done", instagram=True), make_item("todo")])

        assert [c for c in calls if c[0] == 'get_public_url'] == [('get_public_url', 'todo.mp4')]
        assert ('used_url', 'https://example.com/todo-vid') in calls


# ============================================
# CONSTRUCTION
# ============================================

class TestPipelineInit:

    def test_requires_publishers(self, feed, notifier):
        with pytest.raises(ValueError):
            make_pipeline(feed, [], notifier)

    def test_rejects_duplicate_platform(self, feed, notifier, make_publishers):
        publishers = make_publishers()
        with pytest.raises(ValueError):
            make_pipeline(feed, publishers + [publishers[0]], notifier)
