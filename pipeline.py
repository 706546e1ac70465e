"""
pipeline.py - Publish Pipeline

Drives each pending work item through every publisher in a fixed order:

1. Publish to each platform in turn. A failure on one platform never stops
   the next one from being attempted.
2. After every real success, mark the platform done and write the status
   back to the sidecar before moving on, so a crash mid-item never causes a
   re-publish on the next run.
3. Decide overall success, then move the item to the done folder or leave
   it pending for the next run.
4. Send the report.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from publishers.base_publisher import BasePublisher, PublishOutcome, VideoSource
from utils.log import log_success
from work_item import OPTIONAL_PLATFORM, Platform, StatusVector, WorkItem

module_logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """Everything that happened to one work item during this run."""
    item: WorkItem
    outcomes: List[PublishOutcome] = field(default_factory=list)
    all_success: bool = False
    x_enabled: bool = False

    @property
    def status(self) -> StatusVector:
        return self.item.status


def compute_all_success(
    outcomes: Sequence[PublishOutcome],
    optional_enabled: bool,
    optional_platform: Platform = OPTIONAL_PLATFORM,
) -> bool:
    """
    Decide whether the item is fully published.

    Skipped outcomes never count, whichever reason they were skipped for.
    The optional platform's outcome is ignored while that platform is
    disabled. Any other failure makes the whole item unsuccessful.
    """
    for outcome in outcomes:
        if outcome.skipped:
            continue
        if outcome.platform is optional_platform and not optional_enabled:
            continue
        if not outcome.success:
            return False
    return True


class PublishPipeline:
    """
    Sequential multi-platform publisher with resumable per-platform status.

    Args:
        feed: Source feed / status store (``download``, ``update_status``,
            ``finalize``, ``get_public_url``)
        publishers: Publishers in publish order, one per platform
        notifier: Report sender with ``send(BatchOutcome)``
        optional_enabled: Whether the optional platform (X) is enabled
        logger: Logger for progress and errors
    """

    def __init__(
        self,
        feed,
        publishers: Sequence[BasePublisher],
        notifier,
        optional_enabled: bool,
        logger: Optional[logging.Logger] = None,
    ):
        if not publishers:
            raise ValueError("At least one publisher is required")
        platforms = [p.PLATFORM for p in publishers]
        if len(set(platforms)) != len(platforms):
            raise ValueError(f"Each platform may appear only once: {[p.value for p in platforms]}")

        self.feed = feed
        self.publishers = list(publishers)
        self.notifier = notifier
        self.optional_enabled = optional_enabled
        self.logger = logger or module_logger

    def run_one(self, item: WorkItem, source: VideoSource) -> BatchOutcome:
        """
        Publish one item to every platform, then finalize or retain it.

        Status writes propagate their errors: if the sidecar cannot be
        updated the item stops here and is handled at the item boundary.
        """
        log = self.logger
        outcomes = []

        for publisher in self.publishers:
            outcome = publisher.publish(item, source)

            if outcome.success and not outcome.skipped:
                item.status.mark_done(outcome.platform)
                self.feed.update_status(item)

            outcomes.append(outcome)

        all_success = compute_all_success(outcomes, self.optional_enabled)
        batch = BatchOutcome(
            item=item,
            outcomes=outcomes,
            all_success=all_success,
            x_enabled=self.optional_enabled,
        )

        if all_success:
            log_success(log, "All platforms succeeded. Moving %s to the done folder.", item.video_file_name)
            self.feed.finalize(item)
        else:
            log.warning("Some platforms failed. Keeping %s in the pending folder.", item.video_file_name)

        log.info("--- Result summary: %s ---", item.video_file_name)
        for outcome in outcomes:
            log.info("  %s", outcome)

        try:
            self.notifier.send(batch)
        except Exception:
            log.exception("Report for %s could not be sent", item.video_file_name)

        return batch

    def process(self, item: WorkItem) -> BatchOutcome:
        """Download the item's video and run it through the publishers."""
        local_path = self.feed.download(item)
        source = VideoSource(local_path, lambda: self.feed.get_public_url(item))
        return self.run_one(item, source)

    def run(self, items: Sequence[WorkItem]) -> List[BatchOutcome]:
        """
        Process every item in order.

        An exception while processing one item is logged with the item's
        identity and the batch continues with the next item.

        Returns:
            BatchOutcomes of the items that ran to completion
        """
        log = self.logger
        results = []

        for item in items:
            log.info("=" * 40)
            log.info("Processing: %s", item.video_file_name)
            log.info("Title: %s", item.title)
            log.info("=" * 40)

            try:
                results.append(self.process(item))
            except Exception:
                log.exception("Error while processing %s", item.video_file_name)

        return results
