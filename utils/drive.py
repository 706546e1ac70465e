"""
drive.py - Google Drive Feed

Reads pending video + JSON sidecar pairs from a Google Drive folder, writes
upload status back into the sidecar, and moves finished pairs to the done
folder. Also owns the local staging directory for downloaded videos.
"""

import io
import json
import logging
import re
import shutil
from pathlib import Path
from typing import Dict, List

from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseDownload, MediaIoBaseUpload

from manager import DriveConfig
from utils.log import log_success
from work_item import MetadataError, WorkItem, build_work_item

logger = logging.getLogger(__name__)

# Google Drive API scopes
SCOPES = ['https://www.googleapis.com/auth/drive']

PUBLIC_URL_TEMPLATE = "https://drive.google.com/uc?export=download&id={file_id}"


def _base_name(file_name: str, extension: str) -> str:
    return re.sub(rf"\.{extension}$", "", file_name, flags=re.IGNORECASE)


class DriveFeed:
    """
    Pending-folder feed and status store backed by Google Drive.

    Use as a context manager around the whole batch so the staging
    directory is removed when the run ends, whatever the outcome.
    """

    def __init__(self, config: DriveConfig, tmp_dir: str = "tmp", service=None):
        """
        Initialize Google Drive service.

        Args:
            config: Drive credentials and folder IDs
            tmp_dir: Local staging directory for downloaded videos
            service: Prebuilt Drive API client (built from credentials if omitted)
        """
        self.config = config
        self.tmp_dir = Path(tmp_dir)

        if service is None:
            try:
                info = json.loads(config.credentials_json)
            except json.JSONDecodeError as e:
                raise ValueError(f"GDRIVE_CREDENTIALS_JSON is not valid JSON: {e}") from e
            credentials = Credentials.from_service_account_info(info, scopes=SCOPES)
            service = build('drive', 'v3', credentials=credentials, cache_discovery=False)
        self.service = service

    def __enter__(self) -> "DriveFeed":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    # ==========================================
    # Feed
    # ==========================================

    def _list_files(self, query: str) -> List[Dict[str, str]]:
        response = self.service.files().list(
            q=query,
            fields='files(id, name)',
            orderBy='createdTime asc',
        ).execute()
        return response.get('files', [])

    def _fetch_json(self, file_id: str):
        content = self.service.files().get_media(fileId=file_id).execute()
        if isinstance(content, bytes):
            try:
                content = content.decode('utf-8')
            except UnicodeDecodeError as e:
                raise MetadataError(f"sidecar is not valid UTF-8: {e}") from e
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise MetadataError(f"sidecar is not valid JSON: {e}") from e

    def fetch_pending(self) -> List[WorkItem]:
        """
        Collect video + sidecar pairs from the pending folder.

        Videos without a sidecar and pairs whose sidecar fails validation
        are logged and left out; they stay in the pending folder.

        Returns:
            WorkItems in creation order
        """
        folder = self.config.pending_folder_id
        logger.info("Searching pending folder for files...")

        videos = self._list_files(
            f"'{folder}' in parents and mimeType='video/mp4' and trashed=false"
        )
        sidecars = self._list_files(
            f"'{folder}' in parents and name contains '.json' and trashed=false"
        )
        logger.info("Found MP4=%d, JSON=%d", len(videos), len(sidecars))

        sidecar_by_base = {}
        for sidecar in sidecars:
            sidecar_by_base.setdefault(_base_name(sidecar['name'], 'json'), sidecar)

        items = []
        for video in videos:
            sidecar = sidecar_by_base.get(_base_name(video['name'], 'mp4'))
            if sidecar is None:
                logger.warning("No matching JSON for %s, skipping", video['name'])
                continue

            logger.info("Pair found: %s <-> %s", video['name'], sidecar['name'])
            try:
                data = self._fetch_json(sidecar['id'])
                items.append(build_work_item(video, sidecar, data))
            except MetadataError as e:
                logger.error("Invalid metadata in %s (%s), skipping: %s", sidecar['name'], video['name'], e)
            except HttpError as e:
                logger.error("Could not read %s (%s), skipping: %s", sidecar['name'], video['name'], e)

        return items

    def download(self, item: WorkItem) -> Path:
        """Download the item's video into the staging directory."""
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        local_path = self.tmp_dir / item.video_file_name

        logger.info("Downloading %s -> %s", item.video_file_name, local_path)
        request = self.service.files().get_media(fileId=item.video_file_id)
        with open(local_path, 'wb') as f:
            downloader = MediaIoBaseDownload(f, request)
            done = False
            while not done:
                status, done = downloader.next_chunk()
                if status:
                    logger.debug("Download progress: %d%%", int(status.progress() * 100))

        log_success(logger, "Downloaded %s", item.video_file_name)
        return local_path

    # ==========================================
    # Status store
    # ==========================================

    def update_status(self, item: WorkItem) -> None:
        """Overwrite the sidecar JSON with the item's current upload status."""
        content = json.dumps(item.to_record(), ensure_ascii=False, indent=2)
        media = MediaIoBaseUpload(
            io.BytesIO(content.encode('utf-8')),
            mimetype='application/json',
            resumable=False,
        )
        self.service.files().update(
            fileId=item.json_file_id,
            media_body=media,
        ).execute()
        logger.info("Status updated: %s %s", item.json_file_name, item.status.to_dict())

    def finalize(self, item: WorkItem) -> None:
        """Move the video and its sidecar to the done folder."""
        for file_id in (item.video_file_id, item.json_file_id):
            self.service.files().update(
                fileId=file_id,
                addParents=self.config.done_folder_id,
                removeParents=self.config.pending_folder_id,
                fields='id, parents',
            ).execute()

        log_success(
            logger, "Moved %s and %s to the done folder", item.video_file_name, item.json_file_name
        )

    def get_public_url(self, item: WorkItem) -> str:
        """Make the video readable by anyone and return a direct download URL."""
        self.service.permissions().create(
            fileId=item.video_file_id,
            body={'role': 'reader', 'type': 'anyone'},
        ).execute()
        return PUBLIC_URL_TEMPLATE.format(file_id=item.video_file_id)

    def cleanup(self) -> None:
        """Remove the staging directory."""
        if self.tmp_dir.exists():
            shutil.rmtree(self.tmp_dir, ignore_errors=True)
            logger.info("Removed staging directory %s", self.tmp_dir)
