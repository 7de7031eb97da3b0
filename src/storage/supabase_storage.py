"""Object storage adapter: uploads diff/baseline images to a Supabase storage bucket."""

from __future__ import annotations

import logging
from pathlib import Path

from supabase import Client, create_client

from src.models.config import StorageConfig

logger = logging.getLogger(__name__)


class SupabaseStorage:
    """Best-effort uploads and downloads; failures are logged, never raised."""

    def __init__(self, config: StorageConfig, client: Client | None = None):
        self.config = config
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None or self.config.enabled

    def _bucket(self):
        if self._client is None:
            self._client = create_client(self.config.supabase_url, self.config.supabase_token)
        return self._client.storage.from_(self.config.bucket_name)

    def public_url_for(self, key: str) -> str:
        base = self.config.public_url
        return f"{base}/{key}" if base else key

    def upload(self, key: str, local_path: str | Path, content_type: str = "image/png") -> str:
        """Upload a local file under ``key`` (overwriting); returns its public URL or ""."""
        if not self.enabled:
            logger.debug("Storage not configured, skipping upload of %s", key)
            return ""
        try:
            data = Path(local_path).read_bytes()
            self._bucket().upload(
                path=key,
                file=data,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            logger.error("Failed to upload %s to storage: %s", key, e)
            return ""
        url = self.public_url_for(key)
        logger.info("Uploaded %s to storage: %s", key, url)
        return url

    def download_folder(self, folder: str, dest_root: str | Path) -> list[Path]:
        """Download every file in a bucket folder to ``dest_root/folder``."""
        if not self.enabled:
            logger.warning("Storage not configured, cannot download %s", folder)
            return []
        try:
            bucket = self._bucket()
            files = bucket.list(folder)
        except Exception as e:
            logger.error("Error listing files in folder %s: %s", folder, e)
            return []

        if not files:
            logger.info("No files found in folder: %s", folder)
            return []
        logger.info("Found %d files in folder: %s", len(files), folder)

        downloaded = []
        for entry in files:
            name = entry.get("name") if isinstance(entry, dict) else getattr(entry, "name", None)
            if not name:
                continue
            remote = f"{folder}/{name}"
            try:
                data = bucket.download(remote)
            except Exception as e:
                logger.error("Error downloading %s: %s", remote, e)
                continue
            local = Path(dest_root) / folder / name
            local.parent.mkdir(parents=True, exist_ok=True)
            local.write_bytes(data)
            downloaded.append(local)
            logger.debug("Downloaded: %s", remote)

        logger.info("Downloaded %d file(s) from folder: %s", len(downloaded), folder)
        return downloaded
