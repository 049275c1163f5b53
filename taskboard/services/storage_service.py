"""Storage service — card attachments in Supabase Storage (prod) or local disk (dev).

Supabase bucket: kanban-files (must be created in Supabase dashboard).
Local fallback: instance/uploads/ directory.

Provides a unified interface for uploading, removing and linking files.
"""

import logging
import os
import uuid

import requests
from flask import current_app, url_for

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the object store rejects or fails a request."""


def _get_supabase_config():
    """Return Supabase storage config if available, else None."""
    url = current_app.config.get("SUPABASE_URL")
    key = current_app.config.get("SUPABASE_SERVICE_KEY")
    bucket = current_app.config.get("SUPABASE_STORAGE_BUCKET", "kanban-files")

    if url and key:
        return {"url": url.rstrip("/"), "key": key, "bucket": bucket}
    return None


def validate_file(file):
    """Validate an uploaded file (from request.files).

    Returns (ok: bool, error: str|None).
    """
    if not file or not file.filename:
        return False, "No file selected."

    max_size = current_app.config.get("MAX_ATTACHMENT_SIZE", 10 * 1024 * 1024)

    # Check file size (read + seek back)
    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)

    if size > max_size:
        return False, (
            f"File is too large ({size / (1024*1024):.1f} MB). "
            f"Maximum is {max_size // (1024*1024)} MB."
        )

    if size == 0:
        return False, "File is empty."

    return True, None


def build_storage_path(card_id, filename):
    """Random object name under the card's folder, keeping the extension."""
    ext = os.path.splitext(filename)[1].lower()
    return f"{card_id}/{uuid.uuid4().hex}{ext}"


def upload_file(file, card_id):
    """Upload a file and return metadata dict.

    Args:
        file: Werkzeug FileStorage from request.files
        card_id: The card this attachment belongs to

    Returns dict with:
        file_name: original filename
        storage_path: path in bucket or on disk
        file_type: MIME type
        file_size: bytes

    Raises:
        StorageError: If Supabase rejects the upload.
    """
    original_name = file.filename
    storage_path = build_storage_path(card_id, original_name)

    file_data = file.read()
    file_size = len(file_data)
    content_type = file.content_type or "application/octet-stream"

    supabase = _get_supabase_config()
    if supabase:
        _upload_supabase(supabase, storage_path, file_data, content_type)
    else:
        _upload_local(storage_path, file_data)

    return {
        "file_name": original_name,
        "storage_path": storage_path,
        "file_type": content_type,
        "file_size": file_size,
    }


def _upload_supabase(config, path, data, content_type):
    url = f"{config['url']}/storage/v1/object/{config['bucket']}/{path}"

    headers = {
        "Authorization": f"Bearer {config['key']}",
        "Content-Type": content_type,
    }

    timeout = current_app.config.get("SUPABASE_TIMEOUT", 30)
    try:
        resp = requests.post(url, headers=headers, data=data, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Supabase upload failed for {path}: {e}")
        raise StorageError("Upload failed. Please try again.") from e

    logger.info(f"Uploaded to Supabase: {path}")


def _local_root():
    return os.path.join(current_app.instance_path, "uploads")


def _upload_local(path, data):
    """Write to the local filesystem (dev fallback)."""
    filepath = os.path.join(_local_root(), path)
    os.makedirs(os.path.dirname(filepath), exist_ok=True)

    with open(filepath, "wb") as f:
        f.write(data)

    logger.info(f"Uploaded locally: {filepath}")


def delete_file(storage_path):
    """Remove a stored object.

    Raises:
        StorageError: If Supabase refuses the removal.
    """
    supabase = _get_supabase_config()
    if supabase:
        url = f"{supabase['url']}/storage/v1/object/{supabase['bucket']}"
        headers = {"Authorization": f"Bearer {supabase['key']}"}
        try:
            resp = requests.delete(
                url,
                headers=headers,
                json={"prefixes": [storage_path]},
                timeout=current_app.config.get("SUPABASE_TIMEOUT", 30),
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to delete from Supabase: {storage_path}: {e}")
            raise StorageError("Could not remove the file.") from e
        logger.info(f"Removed from Supabase: {storage_path}")
    else:
        filepath = os.path.join(_local_root(), storage_path)
        try:
            os.remove(filepath)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to delete local file: {e}")


def create_signed_url(storage_path, expires_in=None):
    """Return a short-lived URL for downloading the object.

    Local uploads get the dev-only /uploads/ route instead.
    """
    if expires_in is None:
        expires_in = current_app.config.get("SIGNED_URL_TTL", 60)

    supabase = _get_supabase_config()
    if not supabase:
        return url_for("serve_upload", filepath=storage_path)

    url = f"{supabase['url']}/storage/v1/object/sign/{supabase['bucket']}/{storage_path}"
    headers = {"Authorization": f"Bearer {supabase['key']}"}
    try:
        resp = requests.post(
            url,
            headers=headers,
            json={"expiresIn": expires_in},
            timeout=current_app.config.get("SUPABASE_TIMEOUT", 30),
        )
        resp.raise_for_status()
        signed = resp.json().get("signedURL")
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Failed to sign URL for {storage_path}: {e}")
        raise StorageError("Could not create a download link.") from e

    if not signed:
        raise StorageError("Could not create a download link.")

    return f"{supabase['url']}/storage/v1{signed}"
