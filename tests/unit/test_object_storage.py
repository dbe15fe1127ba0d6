"""Unit tests for S3-compatible object storage."""

from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from services.object_storage import ObjectStorage, ObjectStorageError, storage_from_config


def _storage(**kwargs) -> tuple[ObjectStorage, Mock]:
    client = Mock()
    storage = ObjectStorage("key", "secret", bucket_name="reels", client=client, **kwargs)
    return storage, client


@pytest.mark.unit
class TestObjectStorage:
    def test_upload_returns_path_style_url(self, tmp_path):
        storage, client = _storage(endpoint_url="https://nyc3.example.com/")
        video = tmp_path / "out.mp4"
        video.write_bytes(b"mp4")

        url = storage.upload_file("renders/out.mp4", video, content_type="video/mp4")

        assert url == "https://nyc3.example.com/reels/renders/out.mp4"
        _, bucket, key = client.upload_fileobj.call_args.args
        assert (bucket, key) == ("reels", "renders/out.mp4")
        extra = client.upload_fileobj.call_args.kwargs["ExtraArgs"]
        assert extra == {"ContentType": "video/mp4", "ACL": "public-read"}

    def test_public_url_base_and_guessed_type(self):
        storage, client = _storage(public_url="https://cdn.example.com/")

        url = storage.upload_file("a/b.json", "{}")

        assert url == "https://cdn.example.com/a/b.json"
        assert client.upload_fileobj.call_args.kwargs["ExtraArgs"]["ContentType"] == "application/json"

    def test_upload_failure_wrapped(self):
        storage, client = _storage()
        client.upload_fileobj.side_effect = ClientError({"Error": {"Code": "403"}}, "PutObject")

        with pytest.raises(ObjectStorageError):
            storage.upload_file("x.mp4", b"data")

    def test_file_exists(self):
        storage, client = _storage()
        assert storage.file_exists("x.mp4") is True
        client.head_object.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadObject")
        assert storage.file_exists("x.mp4") is False

    def test_unconfigured_returns_none(self):
        assert storage_from_config({"storage_access_key_id": "k"}) is None
