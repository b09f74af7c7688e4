import os
import pathlib
import uuid
from functools import lru_cache
from urllib.parse import urlparse
from urllib.request import url2pathname

from google.cloud import storage


class StorageError(Exception):
    pass


class StorageClient:
    """Upload sink for diagnostic audio and photos: local directory or a GCS bucket."""

    def __init__(self) -> None:
        self.bucket_name = os.getenv("GCS_BUCKET")
        self.use_local = os.getenv("LOCAL_STORAGE", "0") == "1" or not self.bucket_name
        self.base_dir = pathlib.Path(os.getenv("LOCAL_STORAGE_DIR", "storage")).resolve()
        self._client = storage.Client() if self.bucket_name and not self.use_local else None

    def _ensure_bucket(self):
        if not self.bucket_name or not self._client:
            raise StorageError("GCS_BUCKET nao configurado.")
        return self._client.bucket(self.bucket_name)

    def upload_bytes(self, content: bytes, dest_path: str, content_type: str) -> str:
        if self.use_local:
            full_path = self.base_dir / dest_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(content)
            return full_path.as_uri()
        bucket = self._ensure_bucket()
        blob = bucket.blob(dest_path)
        blob.upload_from_string(content, content_type=content_type)
        return f"gs://{self.bucket_name}/{dest_path}"

    def download_bytes(self, url: str) -> bytes:
        if url.startswith("file://"):
            path = pathlib.Path(url2pathname(urlparse(url).path))
            if not path.exists():
                raise StorageError(f"Arquivo nao encontrado: {url}")
            return path.read_bytes()
        if url.startswith("gs://"):
            bucket_name, _, blob_name = url[len("gs://"):].partition("/")
            client = self._client or storage.Client()
            return client.bucket(bucket_name).blob(blob_name).download_as_bytes()
        raise StorageError(f"URL de armazenamento nao suportada: {url}")


def build_object_name(tenant_id: str, kind: str, owner_id: str, filename: str) -> str:
    safe = (filename or "arquivo").replace(" ", "_").replace("/", "_")
    return f"{tenant_id}/{kind}/{owner_id}/{uuid.uuid4().hex}_{safe}"


@lru_cache(maxsize=1)
def get_storage_client() -> StorageClient:
    return StorageClient()
