"""Supabase Storage bucket for encrypted photo blobs."""

import asyncio
from dataclasses import dataclass

from supabase import Client

from yogaageproof.domain.errors import normalize_error
from yogaageproof.services.cloud import BlobStorage

_LIST_LIMIT = 1000


@dataclass
class SupabasePhotoStorage(BlobStorage):
    """Supabase implementation of the photo bucket."""

    client: Client
    bucket: str = "progress-photos"
    page_size: int = _LIST_LIMIT

    async def upload(self, path: str, data: bytes) -> None:
        await self._call(
            lambda: self._bucket().upload(
                path,
                data,
                file_options={
                    "content-type": "application/octet-stream",
                    "upsert": "true",
                },
            )
        )

    async def download(self, path: str) -> bytes:
        return await self._call(lambda: self._bucket().download(path))

    async def remove(self, paths: list[str]) -> None:
        await self._call(lambda: self._bucket().remove(paths))

    async def list(self, prefix: str, search: str | None = None) -> list[str]:
        """Return every name under prefix, paging past the bucket's listing limit."""
        names: list[str] = []
        offset = 0
        while True:
            options: dict[str, object] = {"limit": self.page_size, "offset": offset}
            if search:
                options["search"] = search
            rows = await self._call(
                lambda options=options: self._bucket().list(prefix, options)
            )
            rows = rows or []
            names.extend(row["name"] for row in rows if row.get("name"))
            if len(rows) < self.page_size:
                return names
            offset += len(rows)

    def public_url(self, path: str) -> str:
        return self._bucket().get_public_url(path)

    def _bucket(self):  # noqa: ANN202
        return self.client.storage.from_(self.bucket)

    async def _call(self, func):  # noqa: ANN001, ANN202
        """Run a blocking SDK call off the loop, normalizing its errors."""
        try:
            return await asyncio.to_thread(func)
        except Exception as exc:
            error = normalize_error(exc)
            if error is exc:
                raise
            raise error from exc
