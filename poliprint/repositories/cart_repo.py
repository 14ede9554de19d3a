# poliprint/repositories/cart_repo.py
"""
Durable storage adapters for cart snapshots.

Each cart session owns one blob stored under the fixed cart key
(CART_STORAGE_KEY, "poliprint-cart" by default). Adapters only move bytes;
JSON (de)serialization and validation live in CartStorage so every backend
reports corrupt data the same way.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from poliprint.core import storage_utils
from poliprint.core.config import Settings, get_settings
from poliprint.schemas.cart import CartSnapshot


class CorruptCartDataError(Exception):
    """Stored blob exists but is not a valid cart snapshot."""


class CartStorage:
    """
    Base adapter: load() -> snapshot | None, save(snapshot), clear().

    Subclasses implement the raw byte primitives.
    """

    def __init__(self, session_id: str, key: str):
        self.session_id = session_id
        self.key = key

    # ---- raw primitives ----

    def _read(self) -> bytes | None:
        raise NotImplementedError

    def _write(self, blob: bytes) -> None:
        raise NotImplementedError

    def _delete(self) -> None:
        raise NotImplementedError

    # ---- public interface ----

    def load(self) -> CartSnapshot | None:
        """
        Returns None if nothing is stored.

        Raises:
            CorruptCartDataError: if the blob cannot be parsed.
        """
        blob = self._read()
        if blob is None:
            return None
        try:
            return CartSnapshot.model_validate(json.loads(blob))
        except (ValueError, ValidationError) as exc:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            raise CorruptCartDataError(str(exc)) from exc

    def save(self, snapshot: CartSnapshot) -> None:
        payload = snapshot.model_dump(mode="json", by_alias=True)
        self._write(json.dumps(payload, ensure_ascii=False).encode("utf-8"))

    def clear(self) -> None:
        self._delete()


class MemoryCartStorage(CartStorage):
    """
    Keeps blobs in a dict shared by all sessions of one registry.
    Used in tests and single-process demos.
    """

    def __init__(self, session_id: str, key: str, blobs: dict[str, bytes]):
        super().__init__(session_id, key)
        self._blobs = blobs

    @property
    def _slot(self) -> str:
        return f"{self.session_id}:{self.key}"

    def _read(self) -> bytes | None:
        return self._blobs.get(self._slot)

    def _write(self, blob: bytes) -> None:
        self._blobs[self._slot] = blob

    def _delete(self) -> None:
        self._blobs.pop(self._slot, None)


class FileCartStorage(CartStorage):
    """
    One JSON file per session: <root>/<session_id>/<key>.json
    """

    def __init__(self, session_id: str, key: str, root: Path):
        super().__init__(session_id, key)
        self.path = root / session_id / f"{key}.json"

    def _read(self) -> bytes | None:
        if not self.path.exists():
            return None
        return self.path.read_bytes()

    def _write(self, blob: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write-then-rename so a crash never leaves a half-written blob
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(blob)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _delete(self) -> None:
        self.path.unlink(missing_ok=True)


class SupabaseCartStorage(CartStorage):
    """
    Stores snapshots in a private Supabase Storage bucket:
        sessions/<session_id>/<key>.json
    """

    @property
    def object_path(self) -> str:
        return f"sessions/{self.session_id}/{self.key}.json"

    def _read(self) -> bytes | None:
        return storage_utils.download_from_storage(self.object_path)

    def _write(self, blob: bytes) -> None:
        storage_utils.upload_to_storage(self.object_path, blob)

    def _delete(self) -> None:
        storage_utils.delete_from_storage(self.object_path)


CartStorageFactory = Callable[[str], CartStorage]

_memory_blobs: dict[str, bytes] = {}


def build_cart_storage_factory(settings: Settings | None = None) -> CartStorageFactory:
    """
    Pick the storage backend once, from configuration.
    """
    settings = settings or get_settings()
    backend = settings.CART_STORAGE_BACKEND.strip().lower()
    key = settings.CART_STORAGE_KEY

    if backend == "memory":
        return lambda session_id: MemoryCartStorage(session_id, key, _memory_blobs)
    if backend == "file":
        root = Path(settings.CART_STORAGE_DIR)
        return lambda session_id: FileCartStorage(session_id, key, root)
    if backend == "supabase":
        return lambda session_id: SupabaseCartStorage(session_id, key)

    raise ValueError(f"Unknown CART_STORAGE_BACKEND: {settings.CART_STORAGE_BACKEND!r}")


def reset_memory_storage() -> None:
    _memory_blobs.clear()
