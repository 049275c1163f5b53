"""Tests for storage_service — local fallback and Supabase Storage (mocked)."""

import io
import os
from unittest.mock import MagicMock, patch

import pytest
import requests
from werkzeug.datastructures import FileStorage

from taskboard.services import storage_service
from taskboard.services.storage_service import StorageError


def _file(data=b"hello", name="notes.txt", content_type="text/plain"):
    return FileStorage(stream=io.BytesIO(data), filename=name, content_type=content_type)


@pytest.fixture
def supabase(app, monkeypatch):
    monkeypatch.setitem(app.config, "SUPABASE_URL", "https://proj.supabase.co/")
    monkeypatch.setitem(app.config, "SUPABASE_SERVICE_KEY", "service-key")
    monkeypatch.setitem(app.config, "SUPABASE_STORAGE_BUCKET", "kanban-files")


class TestValidation:

    def test_valid_file(self):
        assert storage_service.validate_file(_file()) == (True, None)

    def test_missing_file(self):
        ok, error = storage_service.validate_file(None)
        assert not ok
        assert error == "No file selected."

    def test_too_large(self, app, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_ATTACHMENT_SIZE", 4)
        ok, error = storage_service.validate_file(_file(b"12345"))
        assert not ok
        assert "too large" in error

    def test_storage_path_keeps_extension(self):
        path = storage_service.build_storage_path("card-1", "Report.PDF")
        assert path.startswith("card-1/")
        assert path.endswith(".pdf")


class TestLocalStorage:

    def test_upload_and_delete(self, tmp_path):
        with patch("taskboard.services.storage_service._local_root", return_value=str(tmp_path)):
            meta = storage_service.upload_file(_file(), "card-1")

            full_path = tmp_path / meta["storage_path"]
            assert full_path.read_bytes() == b"hello"
            assert meta["file_name"] == "notes.txt"
            assert meta["file_size"] == 5
            assert meta["file_type"] == "text/plain"

            storage_service.delete_file(meta["storage_path"])
            assert not os.path.exists(full_path)

    def test_delete_missing_file_is_quiet(self, tmp_path):
        with patch("taskboard.services.storage_service._local_root", return_value=str(tmp_path)):
            storage_service.delete_file("card-1/gone.txt")

    def test_signed_url_points_at_upload_route(self, app):
        with app.test_request_context():
            url = storage_service.create_signed_url("card-1/abc.txt")
        assert url == "/uploads/card-1/abc.txt"


class TestSupabaseStorage:

    @patch("taskboard.services.storage_service.requests.post")
    def test_upload_posts_to_bucket(self, mock_post, supabase):
        mock_post.return_value = MagicMock(status_code=200)

        meta = storage_service.upload_file(_file(), "card-1")

        url = mock_post.call_args.args[0]
        assert url == f"https://proj.supabase.co/storage/v1/object/kanban-files/{meta['storage_path']}"
        headers = mock_post.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer service-key"
        assert headers["Content-Type"] == "text/plain"
        assert mock_post.call_args.kwargs["data"] == b"hello"

    @patch("taskboard.services.storage_service.requests.post")
    def test_upload_failure_raises(self, mock_post, supabase):
        mock_post.return_value.raise_for_status.side_effect = requests.HTTPError("403")

        with pytest.raises(StorageError, match="Upload failed"):
            storage_service.upload_file(_file(), "card-1")

    @patch("taskboard.services.storage_service.requests.delete")
    def test_delete_sends_prefixes(self, mock_delete, supabase):
        storage_service.delete_file("card-1/abc.txt")

        assert mock_delete.call_args.args[0] == (
            "https://proj.supabase.co/storage/v1/object/kanban-files"
        )
        assert mock_delete.call_args.kwargs["json"] == {"prefixes": ["card-1/abc.txt"]}

    @patch("taskboard.services.storage_service.requests.delete")
    def test_delete_failure_raises(self, mock_delete, supabase):
        mock_delete.side_effect = requests.ConnectionError("down")
        with pytest.raises(StorageError):
            storage_service.delete_file("card-1/abc.txt")

    @patch("taskboard.services.storage_service.requests.post")
    def test_signed_url(self, mock_post, supabase):
        mock_post.return_value.json.return_value = {
            "signedURL": "/object/sign/kanban-files/card-1/abc.txt?token=xyz"
        }

        url = storage_service.create_signed_url("card-1/abc.txt", expires_in=60)

        assert url == (
            "https://proj.supabase.co/storage/v1/object/sign/kanban-files/card-1/abc.txt?token=xyz"
        )
        assert mock_post.call_args.kwargs["json"] == {"expiresIn": 60}

    @patch("taskboard.services.storage_service.requests.post")
    def test_signed_url_without_url_in_response(self, mock_post, supabase):
        mock_post.return_value.json.return_value = {}
        with pytest.raises(StorageError, match="download link"):
            storage_service.create_signed_url("card-1/abc.txt")
