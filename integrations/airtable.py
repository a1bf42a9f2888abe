"""
Airtable REST client.

Lists records from one table, following Airtable's offset cursor.
"""

import time
from typing import Iterator, Optional
from datetime import datetime

import requests
import structlog
from pydantic import ValidationError as PydanticValidationError

from exceptions import AirtableAPIError, ConfigurationError
from models.vendor import AirtableRecord, AirtableRecordPage

logger = structlog.get_logger(__name__)

AIRTABLE_API_URL = "https://api.airtable.com/v0"
MAX_PAGE_SIZE = 100


class AirtableClient:
    """
    Airtable table client.

    Usage:
        airtable = AirtableClient(token, base_id, "Products")
        for record in airtable.iter_records(since=last_run):
            ...
    """

    def __init__(
        self,
        token: str,
        base_id: str,
        table: str,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        page_delay: float = 0.2,
    ):
        self.base_id = base_id
        self.table = table
        self.timeout = timeout
        self.page_delay = page_delay
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    @classmethod
    def from_settings(cls, settings, session=None) -> "AirtableClient":
        """
        Build a client from settings.

        Raises:
            ConfigurationError: If the token or base id is missing
        """
        if not settings.airtable_token:
            raise ConfigurationError("AIRTABLE_TOKEN")
        if not settings.airtable_base_id:
            raise ConfigurationError("AIRTABLE_BASE_ID")

        return cls(
            token=settings.airtable_token,
            base_id=settings.airtable_base_id,
            table=settings.airtable_table,
            session=session,
            timeout=settings.http_timeout_seconds,
            page_delay=settings.sync_request_delay,
        )

    @property
    def url(self) -> str:
        return f"{AIRTABLE_API_URL}/{self.base_id}/{requests.utils.quote(self.table, safe='')}"

    def list_records(
        self,
        page_size: int = MAX_PAGE_SIZE,
        offset: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> AirtableRecordPage:
        """
        Fetch one page of records.

        Args:
            page_size: Records per page (Airtable caps this at 100)
            offset: Cursor returned by the previous page
            since: Only records modified at or after this time

        Raises:
            AirtableAPIError: On network failure or non-2xx response
        """
        params = {"pageSize": min(page_size, MAX_PAGE_SIZE)}
        if offset:
            params["offset"] = offset
        if since:
            params["filterByFormula"] = f"LAST_MODIFIED_TIME()>='{since.isoformat()}'"

        try:
            response = self.session.get(self.url, params=params, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("airtable_request_failed", error=str(e))
            raise AirtableAPIError(f"Airtable request failed: {e}") from e

        if not response.ok:
            try:
                error = response.json().get("error", {})
                message = error.get("message") if isinstance(error, dict) else str(error)
            except ValueError:
                message = None
            logger.error("airtable_api_error", status=response.status_code, message=message)
            raise AirtableAPIError(
                message or f"Airtable returned HTTP {response.status_code}",
                status=response.status_code
            )

        payload = response.json()
        records = []
        for raw in payload.get("records") or []:
            try:
                records.append(AirtableRecord.model_validate(raw))
            except PydanticValidationError as e:
                logger.warning("airtable_record_invalid", record=raw.get("id"), error=str(e))

        return AirtableRecordPage(records=records, offset=payload.get("offset"))

    def iter_records(
        self,
        limit: Optional[int] = None,
        since: Optional[datetime] = None,
    ) -> Iterator[AirtableRecord]:
        """Yield records across pages until the cursor runs out or limit is hit."""
        offset = None
        yielded = 0
        pages = 0

        while True:
            page = self.list_records(offset=offset, since=since)
            pages += 1

            for record in page.records:
                if limit is not None and yielded >= limit:
                    return
                yield record
                yielded += 1

            offset = page.offset
            if not offset:
                break

            if self.page_delay:
                time.sleep(self.page_delay)

        logger.info("airtable_records_listed", pages=pages, records=yielded)

    def test_connection(self) -> bool:
        try:
            self.list_records(page_size=1)
            return True
        except AirtableAPIError as e:
            logger.warning("airtable_connection_test_failed", error=e.message)
            return False
