import pytest

from app.services.storage import StorageError, StorageClient, build_object_name, get_storage_client


def test_local_directory_comes_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("LOCAL_STORAGE", "1")
    monkeypatch.setenv("LOCAL_STORAGE_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("GCS_BUCKET", "oficina-bucket")
    get_storage_client.cache_clear()
    try:
        client = get_storage_client()
        assert client.use_local is True
        url = client.upload_bytes(b"audio", build_object_name("t1", "audio", "d1", "nota voz.webm"), "audio/webm")
        assert url.startswith("file://")
        assert (tmp_path / "uploads" / "t1" / "audio" / "d1").is_dir()
        assert client.download_bytes(url) == b"audio"
    finally:
        get_storage_client.cache_clear()


def test_without_bucket_storage_is_local(tmp_path, monkeypatch):
    monkeypatch.delenv("GCS_BUCKET", raising=False)
    monkeypatch.delenv("LOCAL_STORAGE", raising=False)
    monkeypatch.setenv("LOCAL_STORAGE_DIR", str(tmp_path))
    client = StorageClient()
    assert client.use_local is True
    assert client.base_dir == tmp_path.resolve()
    with pytest.raises(StorageError):
        client.download_bytes("https://example.test/a.webm")
