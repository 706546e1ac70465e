"""
main.py - SNS AutoPost Entry Point

Publishes every video + JSON pair in the pending Google Drive folder to
YouTube, TikTok, Instagram and (optionally) X, one item and one platform
at a time.
Run with: python main.py [--config configs/default.yaml] [--dry-run]

Exit code is 0 on normal completion (also when nothing is pending) and 1
when the run could not start.
"""

import logging
import sys
from datetime import datetime

from dotenv import load_dotenv

from manager import ConfigError, describe_config, load_config, parse_args
from pipeline import PublishPipeline
from publishers import build_publishers
from utils.drive import DriveFeed
from utils.log import log_success, setup_logging
from utils.mailer import MailNotifier
from work_item import OPTIONAL_PLATFORM, PLATFORM_ORDER

logger = logging.getLogger("sns_autopost")


def print_plan(items, x_enabled: bool) -> None:
    """Log which platforms each pending item would be published to."""
    for item in items:
        planned = [
            p.display_name for p in PLATFORM_ORDER
            if not item.status.is_done(p) and (p is not OPTIONAL_PLATFORM or x_enabled)
        ]
        logger.info("[DRY RUN] %s -> %s", item.video_file_name, ", ".join(planned) or "nothing to do")


def main(argv=None) -> int:
    """Main entry point for SNS AutoPost."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    # Local development reads credentials from .env; CI injects them directly
    load_dotenv()

    logger.info("=" * 40)
    logger.info("SNS AutoPost batch started")
    logger.info("=" * 40)
    start_time = datetime.now()

    # Phase 1: configuration
    logger.info("--- Phase 1: configuration ---")
    try:
        config = load_config(config_path=args.config)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        return 1
    logger.debug("Config: %s", describe_config(config))

    try:
        with DriveFeed(config.drive, config.settings.tmp_dir) as feed:
            # Phase 2: collect pending items
            logger.info("--- Phase 2: fetch pending items ---")
            items = feed.fetch_pending()

            if not items:
                logger.info("No pending video/JSON pairs. Nothing to do.")
                return 0

            logger.info("Pending items: %d", len(items))

            if args.dry_run:
                print_plan(items, config.x_enabled)
                return 0

            # Phase 3: publish
            logger.info("--- Phase 3: publish (sequential) ---")
            pipeline = PublishPipeline(
                feed=feed,
                publishers=build_publishers(config),
                notifier=MailNotifier(config.mail, config.settings.mail_sender_name),
                optional_enabled=config.x_enabled,
                logger=logger,
            )
            results = pipeline.run(items)
    except Exception:
        logger.exception("Fatal error. Stopping the batch.")
        return 1

    # Summary
    elapsed = (datetime.now() - start_time).total_seconds()
    completed = sum(1 for r in results if r.all_success)
    logger.info("=" * 40)
    log_success(
        logger,
        "SNS AutoPost batch finished: %d/%d items fully published, %d processed, %.1fs",
        completed, len(items), len(results), elapsed,
    )
    logger.info("=" * 40)
    return 0


if __name__ == "__main__":
    sys.exit(main())
