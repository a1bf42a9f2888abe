"""
Unit tests for AirtableClient.

Run: pytest tests/unit/test_airtable_client.py -v
"""

import pytest
import requests
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

from exceptions import AirtableAPIError, ConfigurationError
from integrations.airtable import AirtableClient
from tests.factories import AirtableRecordFactory


def _response(status: int = 200, payload: dict = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.json.return_value = payload if payload is not None else {}
    return response


@pytest.fixture
def session():
    session = MagicMock()
    session.headers = {}
    return session


@pytest.fixture
def client(session):
    return AirtableClient("pat-token", "appBASE", "Products Table", session=session, page_delay=0)


class TestAirtableClient:
    """Tests for AirtableClient."""

    def test_sets_bearer_header_and_url(self, client, session):
        assert session.headers["Authorization"] == "Bearer pat-token"
        assert client.url == "https://api.airtable.com/v0/appBASE/Products%20Table"

    def test_list_records_with_since_filter(self, client, session):
        session.get.return_value = _response(200, {"records": [AirtableRecordFactory.create(id="rec1")]})
        since = datetime(2024, 5, 1, tzinfo=timezone.utc)

        page = client.list_records(page_size=500, since=since)

        params = session.get.call_args.kwargs["params"]
        assert params["pageSize"] == 100
        assert params["filterByFormula"] == "LAST_MODIFIED_TIME()>='2024-05-01T00:00:00+00:00'"
        assert page.records[0].id == "rec1"
        assert page.offset is None

    def test_iter_records_follows_offset(self, client, session):
        session.get.side_effect = [
            _response(200, {"records": [AirtableRecordFactory.create(id="rec1")], "offset": "itr1"}),
            _response(200, {"records": [AirtableRecordFactory.create(id="rec2")]}),
        ]

        records = list(client.iter_records())

        assert [r.id for r in records] == ["rec1", "rec2"]
        assert session.get.call_args_list[1].kwargs["params"]["offset"] == "itr1"

    def test_iter_records_respects_limit(self, client, session):
        session.get.return_value = _response(200, {
            "records": AirtableRecordFactory.create_batch(5),
            "offset": "more",
        })

        records = list(client.iter_records(limit=3))

        assert len(records) == 3
        assert session.get.call_count == 1

    def test_invalid_records_are_skipped(self, client, session):
        session.get.return_value = _response(200, {
            "records": [{"fields": {"Name": "no id"}}, AirtableRecordFactory.create(id="rec9")]
        })

        page = client.list_records()

        assert [r.id for r in page.records] == ["rec9"]

    def test_error_response_raises(self, client, session):
        session.get.return_value = _response(403, {"error": {"type": "INVALID_PERMISSIONS", "message": "Not allowed"}})

        with pytest.raises(AirtableAPIError) as exc_info:
            client.list_records()

        assert exc_info.value.status == 403
        assert exc_info.value.message == "Not allowed"

    def test_network_error_raises(self, client, session):
        session.get.side_effect = requests.exceptions.ConnectionError("down")

        with pytest.raises(AirtableAPIError):
            client.list_records()

        assert client.test_connection() is False

    def test_from_settings_requires_token(self):
        settings = SimpleNamespace(airtable_token=None, airtable_base_id="appX")

        with pytest.raises(ConfigurationError):
            AirtableClient.from_settings(settings)
