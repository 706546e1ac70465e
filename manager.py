"""
manager.py - Configuration Manager for SNS AutoPost

Handles CLI argument parsing, credential loading from the environment and
the optional YAML behaviour settings. Exposes frozen dataclasses that stay
unchanged for the whole run.
"""

import argparse
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

PROJECT_ROOT = Path(__file__).parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "configs" / "default.yaml"

logger = logging.getLogger(__name__)


class ConfigError(ValueError):
    """Raised when the run cannot start because configuration is missing or invalid."""


class OptionalPlatformState(Enum):
    """Result of the X credential gate."""
    ENABLED = "enabled"
    DISABLED_ABSENT = "disabled_absent"
    DISABLED_PARTIAL = "disabled_partial"

    @property
    def enabled(self) -> bool:
        return self is OptionalPlatformState.ENABLED


@dataclass(frozen=True)
class DriveConfig:
    """Google Drive service account and folder IDs."""
    credentials_json: str
    pending_folder_id: str
    done_folder_id: str


@dataclass(frozen=True)
class YouTubeConfig:
    client_id: str
    client_secret: str
    refresh_token: str


@dataclass(frozen=True)
class TikTokConfig:
    client_key: str
    client_secret: str
    refresh_token: str


@dataclass(frozen=True)
class InstagramConfig:
    access_token: str
    account_id: str


@dataclass(frozen=True)
class XConfig:
    api_key: str
    api_secret: str
    access_token: str
    access_token_secret: str


@dataclass(frozen=True)
class MailConfig:
    user: str
    password: str = field(repr=False)
    to: str


@dataclass(frozen=True)
class PublishSettings:
    """Behaviour settings loaded from YAML (all optional)."""
    tmp_dir: str = "tmp"

    # YouTube
    youtube_category_id: str = "22"  # People & Blogs
    youtube_privacy_status: str = "public"
    youtube_default_language: str = "ja"

    # TikTok
    tiktok_privacy_level: str = "PUBLIC_TO_EVERYONE"
    tiktok_poll_interval_seconds: float = 5.0
    tiktok_max_status_checks: int = 12

    # Instagram container polling
    instagram_poll_interval_seconds: float = 5.0
    instagram_max_status_checks: int = 60

    # X media processing polling
    x_max_status_checks: int = 30

    # Mail
    mail_sender_name: str = "SNS AutoPost"


@dataclass(frozen=True)
class AppConfig:
    """All configuration for one run."""
    drive: DriveConfig
    youtube: YouTubeConfig
    tiktok: TikTokConfig
    instagram: InstagramConfig
    mail: MailConfig
    x: Optional[XConfig] = None
    x_state: OptionalPlatformState = OptionalPlatformState.DISABLED_ABSENT
    settings: PublishSettings = field(default_factory=PublishSettings)

    @property
    def x_enabled(self) -> bool:
        return self.x_state.enabled


X_CREDENTIAL_KEYS = ('X_API_KEY', 'X_API_SECRET', 'X_ACCESS_TOKEN', 'X_ACCESS_TOKEN_SECRET')


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="SNS AutoPost - publish pending Drive videos to YouTube, TikTok, Instagram and X",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py
  python main.py --config configs/default.yaml --verbose
  python main.py --dry-run
        """
    )

    parser.add_argument(
        "--config", "-c",
        help="Path to the YAML behaviour settings (default: configs/default.yaml)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="List pending items and planned platforms without uploading"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(argv)


def _get_required(env: Mapping[str, str], key: str) -> str:
    value = env.get(key)
    if value is None or not value.strip():
        raise ConfigError(f'Required environment variable "{key}" is not set')
    return value.strip()


def _get_optional(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def resolve_x_state(env: Mapping[str, str]) -> OptionalPlatformState:
    """
    Decide whether X publishing is enabled.

    All four credentials are required together. A partial set disables X
    just like an empty one, with a warning so the operator notices.
    """
    present = [key for key in X_CREDENTIAL_KEYS if _get_optional(env, key)]

    if len(present) == len(X_CREDENTIAL_KEYS):
        return OptionalPlatformState.ENABLED

    if present:
        missing = [key for key in X_CREDENTIAL_KEYS if key not in present]
        logger.warning(
            "X credentials are only partially set (missing: %s). All four keys are required; X will be skipped.",
            ", ".join(missing),
        )
        return OptionalPlatformState.DISABLED_PARTIAL

    return OptionalPlatformState.DISABLED_ABSENT


def load_settings(config_path: Optional[str] = None) -> PublishSettings:
    """
    Load behaviour settings from YAML.

    A missing default file yields the built-in defaults. An explicitly given
    path must exist.

    Raises:
        ConfigError: If the file is missing (explicit path), unparsable, or
            not a mapping
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    if not path.exists():
        if config_path:
            raise ConfigError(f"Config file not found: {path}")
        return PublishSettings()

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Config file is not valid YAML: {path} ({e})") from e

    if data is None:
        return PublishSettings()
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")

    youtube = _section(data, 'youtube', path)
    tiktok = _section(data, 'tiktok', path)
    instagram = _section(data, 'instagram', path)
    x = _section(data, 'x', path)
    mail = _section(data, 'mail', path)
    defaults = PublishSettings()

    try:
        return PublishSettings(
            tmp_dir=str(data.get('tmp_dir', defaults.tmp_dir)),
            youtube_category_id=str(youtube.get('category_id', defaults.youtube_category_id)),
            youtube_privacy_status=youtube.get('privacy_status', defaults.youtube_privacy_status),
            youtube_default_language=youtube.get('default_language', defaults.youtube_default_language),
            tiktok_privacy_level=tiktok.get('privacy_level', defaults.tiktok_privacy_level),
            tiktok_poll_interval_seconds=float(
                tiktok.get('poll_interval_seconds', defaults.tiktok_poll_interval_seconds)
            ),
            tiktok_max_status_checks=int(tiktok.get('max_status_checks', defaults.tiktok_max_status_checks)),
            instagram_poll_interval_seconds=float(
                instagram.get('poll_interval_seconds', defaults.instagram_poll_interval_seconds)
            ),
            instagram_max_status_checks=int(
                instagram.get('max_status_checks', defaults.instagram_max_status_checks)
            ),
            x_max_status_checks=int(x.get('max_status_checks', defaults.x_max_status_checks)),
            mail_sender_name=mail.get('sender_name', defaults.mail_sender_name),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value in config file {path}: {e}") from e


def _section(data: Dict[str, Any], key: str, path: Path) -> Dict[str, Any]:
    """Return one settings section, empty when absent."""
    section = data.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f'Section "{key}" in config file {path} must be a mapping')
    return section


def load_config(env: Optional[Mapping[str, str]] = None, config_path: Optional[str] = None) -> AppConfig:
    """
    Load and validate all configuration.

    Args:
        env: Environment mapping (defaults to ``os.environ``)
        config_path: Optional path to the YAML behaviour settings

    Returns:
        AppConfig with every required credential present

    Raises:
        ConfigError: If a required credential is missing or settings are invalid
    """
    env = os.environ if env is None else env
    logger.info("Loading configuration...")

    drive = DriveConfig(
        credentials_json=_get_required(env, 'GDRIVE_CREDENTIALS_JSON'),
        pending_folder_id=_get_required(env, 'GDRIVE_PENDING_FOLDER_ID'),
        done_folder_id=_get_required(env, 'GDRIVE_DONE_FOLDER_ID'),
    )
    youtube = YouTubeConfig(
        client_id=_get_required(env, 'YOUTUBE_CLIENT_ID'),
        client_secret=_get_required(env, 'YOUTUBE_CLIENT_SECRET'),
        refresh_token=_get_required(env, 'YOUTUBE_REFRESH_TOKEN'),
    )
    tiktok = TikTokConfig(
        client_key=_get_required(env, 'TIKTOK_CLIENT_KEY'),
        client_secret=_get_required(env, 'TIKTOK_CLIENT_SECRET'),
        refresh_token=_get_required(env, 'TIKTOK_REFRESH_TOKEN'),
    )
    instagram = InstagramConfig(
        access_token=_get_required(env, 'IG_ACCESS_TOKEN'),
        account_id=_get_required(env, 'IG_ACCOUNT_ID'),
    )
    mail = MailConfig(
        user=_get_required(env, 'MAIL_USER'),
        password=_get_required(env, 'MAIL_PASS'),
        to=_get_required(env, 'MAIL_TO'),
    )

    x_state = resolve_x_state(env)
    x = None
    if x_state.enabled:
        x = XConfig(*(_get_required(env, key) for key in X_CREDENTIAL_KEYS))
        logger.info("X credentials found. X publishing is enabled.")
    else:
        logger.info("X credentials not set. X publishing will be skipped.")

    settings = load_settings(config_path)

    logger.info("Configuration loaded.")
    return AppConfig(
        drive=drive,
        youtube=youtube,
        tiktok=tiktok,
        instagram=instagram,
        mail=mail,
        x=x,
        x_state=x_state,
        settings=settings,
    )


def describe_config(config: AppConfig) -> Dict[str, Any]:
    """Non-secret summary of the loaded configuration for the startup log."""
    return {
        'pending_folder': config.drive.pending_folder_id,
        'done_folder': config.drive.done_folder_id,
        'x': config.x_state.value,
        'mail_to': config.mail.to,
        'tmp_dir': config.settings.tmp_dir,
    }
