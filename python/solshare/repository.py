"""
Location: python/solshare/repository.py

Summary:
    Persistence of share records. The ShareRecordRepository protocol has
    a structured API path (create_private_share / create_public_share)
    and a raw insert path into the same tables (insert_record). persist()
    hides the choice between them: primary first, fallback once, and an
    honest PersistenceResult either way.

Usage:
    Used by engine.py after a payment is confirmed and by flow.py for
    private direct shares and recipient validation.

Example:
    from solshare.repository import HttpShareRepository, persist

    repo = HttpShareRepository(
        "https://api.solbox.cloud",
        db_url="https://xyz.supabase.co",
        db_key="service-role-key",
    )
    result = await persist(repo, record, "https://solbox.cloud/public")
    if not result.durable:
        show_notice(result.warning)
"""

import logging
from typing import Any, Optional, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from .errors import RepositoryError
from .types import PersistenceResult, ShareRecord


logger = logging.getLogger(__name__)

PUBLIC_TABLE = "public_blockchain_files"
PRIVATE_TABLE = "shared_files"

FALLBACK_WARNING = "Share recorded through the fallback path; registry listing may be delayed"
UNRECORDED_WARNING = "Share completed but may not appear in the registry immediately"


@runtime_checkable
class ShareRecordRepository(Protocol):
    """
    Protocol for share record storage.

    Writes are not idempotent; callers must not submit the same record
    twice. All methods raise RepositoryError on failure.
    """

    async def create_private_share(self, record: ShareRecord) -> None:
        """Write a private share (direct or on-chain) through the API."""
        ...

    async def create_public_share(self, record: ShareRecord) -> Optional[str]:
        """
        Write a public share through the API.

        Returns:
            The public URL assigned by the registry, if it returned one
        """
        ...

    async def insert_record(self, record: ShareRecord) -> None:
        """Write the record directly into its table (fallback path)."""
        ...

    async def list_public_shares(self, limit: int = 50) -> list[ShareRecord]:
        """List public shares, most recent first."""
        ...

    async def share_id_exists(self, share_id: str) -> bool:
        """Check whether a user share id exists."""
        ...


def public_url_for(record: ShareRecord, public_url_base: str) -> Optional[str]:
    """Build the public link for a record from its transaction signature."""
    if not record.is_public or not record.transaction_signature:
        return None
    return f"{public_url_base.rstrip('/')}/{record.transaction_signature}"


async def persist(
    repository: ShareRecordRepository,
    record: ShareRecord,
    public_url_base: str,
) -> PersistenceResult:
    """
    Write a share record, falling back to the raw insert path once.

    Never raises: a failure of both paths is reported through
    PersistenceResult.durable=False and an advisory warning, because the
    payment behind the record has already been received.

    Args:
        repository: Where to write the record
        record: The record to write
        public_url_base: Base used to build public links the API did not return

    Returns:
        PersistenceResult describing which path succeeded
    """
    public_url: Optional[str] = None
    try:
        if record.is_public:
            public_url = await repository.create_public_share(record)
        else:
            await repository.create_private_share(record)
        return PersistenceResult(
            record=record,
            path="primary",
            public_url=public_url or public_url_for(record, public_url_base),
            durable=True,
        )
    except Exception as primary_exc:
        logger.warning(
            "Primary share write failed for %s, trying direct insert: %s",
            record.transaction_signature, primary_exc,
        )

    try:
        await repository.insert_record(record)
    except Exception as fallback_exc:
        logger.error(
            "Fallback share write failed for %s: %s",
            record.transaction_signature, fallback_exc,
        )
        return PersistenceResult(
            record=record,
            path="none",
            public_url=public_url_for(record, public_url_base),
            durable=False,
            warning=UNRECORDED_WARNING,
        )

    return PersistenceResult(
        record=record,
        path="fallback",
        public_url=public_url_for(record, public_url_base),
        durable=True,
        warning=FALLBACK_WARNING,
    )


class HttpShareRepository:
    """
    Share repository backed by the app API, with a PostgREST table
    endpoint as the raw insert path.

    Attributes:
        base_url: Base URL of the app API
        db_url: Base URL of the database REST endpoint (fallback path)
        timeout: Request timeout in seconds
    """

    PRIVATE_PATH = "/api/share-file"
    PRIVATE_ONCHAIN_PATH = "/api/share-file-onchain"
    PUBLIC_ONCHAIN_PATH = "/api/share-file-public-onchain"
    PUBLIC_LIST_PATH = "/api/public-files"
    VALIDATE_PATH = "/api/validate-share-id/{share_id}"

    def __init__(
        self,
        base_url: str,
        db_url: Optional[str] = None,
        db_key: Optional[str] = None,
        timeout: float = 15.0,
        headers: Optional[dict[str, str]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.db_url = db_url.rstrip("/") if db_url else None
        self.timeout = timeout
        self._db_key = db_key
        self._http = httpx.AsyncClient(timeout=timeout, headers=headers or {})

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "HttpShareRepository":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def create_private_share(self, record: ShareRecord) -> None:
        path = self.PRIVATE_ONCHAIN_PATH if record.is_onchain else self.PRIVATE_PATH
        await self._request("POST", f"{self.base_url}{path}", json=_api_body(record))

    async def create_public_share(self, record: ShareRecord) -> Optional[str]:
        data = await self._request(
            "POST", f"{self.base_url}{self.PUBLIC_ONCHAIN_PATH}", json=_api_body(record)
        )
        if not isinstance(data, dict) or not data.get("success"):
            raise RepositoryError(f"Public share API returned an unsuccessful response: {data!r}")
        return data.get("public_url")

    async def insert_record(self, record: ShareRecord) -> None:
        if not self.db_url or not self._db_key:
            raise RepositoryError("No direct insert endpoint configured")

        table = PUBLIC_TABLE if record.is_public else PRIVATE_TABLE
        headers = {
            "apikey": self._db_key,
            "Authorization": f"Bearer {self._db_key}",
            "Prefer": "return=representation",
        }
        await self._request(
            "POST", f"{self.db_url}/rest/v1/{table}", json=[record.to_row()], headers=headers
        )

    async def list_public_shares(self, limit: int = 50) -> list[ShareRecord]:
        data = await self._request(
            "GET", f"{self.base_url}{self.PUBLIC_LIST_PATH}", params={"limit": limit}
        )
        rows = data.get("data") if isinstance(data, dict) else data
        if not isinstance(rows, list):
            raise RepositoryError(f"Unexpected public files response: {data!r}")

        records = []
        for row in rows[:limit]:
            try:
                records.append(ShareRecord.model_validate({**row, "visibility": "public"}))
            except (ValidationError, TypeError):
                logger.warning("Skipping malformed public share row: %r", row)
        records.sort(key=lambda r: r.created_at, reverse=True)
        return records

    async def share_id_exists(self, share_id: str) -> bool:
        data = await self._request(
            "GET", f"{self.base_url}{self.VALIDATE_PATH.format(share_id=share_id)}"
        )
        return bool(isinstance(data, dict) and data.get("exists"))

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = await self._http.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RepositoryError(f"{method} {url} failed: {exc}") from exc


def _api_body(record: ShareRecord) -> dict:
    return record.model_dump(mode="json", exclude={"visibility"}, exclude_none=True)


class MemoryShareRepository:
    """
    In-memory share repository for development and testing.

    WARNING: Data is lost when the process restarts.

    Attributes:
        records: Records written through either path, in write order
        share_ids: Share ids reported as existing by share_id_exists()
    """

    def __init__(self, share_ids: Optional[set[str]] = None):
        self.records: list[ShareRecord] = []
        self.share_ids: set[str] = set(share_ids or ())

    async def create_private_share(self, record: ShareRecord) -> None:
        self.records.append(record)

    async def create_public_share(self, record: ShareRecord) -> Optional[str]:
        self.records.append(record)
        return None

    async def insert_record(self, record: ShareRecord) -> None:
        self.records.append(record)

    async def list_public_shares(self, limit: int = 50) -> list[ShareRecord]:
        public = [r for r in self.records if r.is_public]
        public.sort(key=lambda r: r.created_at, reverse=True)
        return public[:limit]

    async def share_id_exists(self, share_id: str) -> bool:
        return share_id in self.share_ids

    def __len__(self) -> int:
        return len(self.records)
