# poliprint/core/storage_utils.py
from poliprint.core.config import get_settings
from poliprint.core.supabase_client import supabase_admin


def _bucket():
    return supabase_admin().storage.from_(get_settings().CART_STORAGE_BUCKET)


def upload_to_storage(path: str, file_bytes: bytes) -> None:
    """
    Upload raw bytes to Supabase Storage.

    If a file already exists at this path, it will be overwritten
    thanks to the 'upsert' option.

    Args:
        path: Full object path inside the bucket.
              Example: "sessions/<session_id>/poliprint-cart.json"
        file_bytes: File content in bytes.
    """
    _bucket().upload(
        path,
        file_bytes,
        {"upsert": "true", "content-type": "application/json"},
    )


def exists_in_storage(path: str) -> bool:
    """
    Check whether an object exists by listing its parent folder.
    """
    folder, _, name = path.rpartition("/")
    entries = _bucket().list(folder)
    return any(entry.get("name") == name for entry in entries or [])


def download_from_storage(path: str) -> bytes | None:
    """
    Download an object; returns None when it does not exist.
    """
    if not exists_in_storage(path):
        return None
    return _bucket().download(path)


def delete_from_storage(path: str) -> None:
    """
    Delete a file from Supabase Storage by its object path.

    Example path (relative to bucket):
        'sessions/<session_id>/poliprint-cart.json'
    """
    # Supabase Python client expects a list of paths.
    _bucket().remove([path])
