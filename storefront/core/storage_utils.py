# storefront/core/storage_utils.py
import uuid

from storefront.core.config import get_settings
from storefront.core.supabase_client import supabase_admin


def _bucket():
    # Client is created on first use so the API can start without a
    # service role key when no image is ever uploaded.
    return supabase_admin().storage.from_(get_settings().STORAGE_BUCKET)


def upload_to_storage(path: str, file_bytes: bytes) -> str:
    """
    Upload raw bytes to Supabase Storage and return the public URL.

    Existing objects at `path` are overwritten (upsert).

    Args:
        path: Full object path inside the bucket,
              e.g. "products/<uuid>/hero.png"
        file_bytes: File content in bytes.
    """
    bucket = _bucket()
    bucket.upload(path, file_bytes, {"upsert": "true"})
    return bucket.get_public_url(path)


def extract_path_from_public_url(url: str) -> str | None:
    """
    Given a public URL, extract the object path relative to the bucket.

    Example:
        https://<proj>.supabase.co/storage/v1/object/public/assets/products/p/hero.png
        -> 'products/p/hero.png'
    """
    marker = f"/storage/v1/object/public/{get_settings().STORAGE_BUCKET}/"
    idx = url.find(marker)
    if idx == -1:
        return None
    return url[idx + len(marker) :]


def delete_public_url(url: str) -> None:
    """
    Delete a stored file by its public URL.
    No-op if the URL does not belong to this bucket.
    """
    path = extract_path_from_public_url(url)
    if path:
        _bucket().remove([path])


def generate_filename(ext: str) -> str:
    """Random "<uuid4>.<ext>" filename for gallery uploads."""
    return f"{uuid.uuid4()}.{ext}"
