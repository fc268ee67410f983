"""
Unit tests for ShoptetClient.

Run: pytest tests/unit/test_shoptet_client.py -v
"""

import json

import pytest
import requests
from unittest.mock import MagicMock

from exceptions import ConfigurationError, UpstreamUnavailableError
from integrations.shoptet import FALLBACK_ERROR, MALFORMED_ERROR, ShoptetClient, extract_error_message
from tests.factories import ShopFactory


def make_response(body=None, status_code: int = 200, raw: bytes = None) -> MagicMock:
    """Mock requests.Response with a JSON body."""
    response = MagicMock()
    response.status_code = status_code
    response.content = raw if raw is not None else (json.dumps(body).encode() if body is not None else b"")
    response.json.return_value = body
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def client(session):
    return ShoptetClient(base_url="https://api.test/", timeout=5, page_size=50, session=session)


@pytest.fixture
def shop():
    return ShopFactory.create(id=2, api_access_token="secret-token")


class TestExtractErrorMessage:

    def test_errors_list(self):
        response = make_response({"errors": [{"errorCode": "x", "message": "Invalid GUID"}]}, 400)

        assert extract_error_message(response) == "Invalid GUID"

    def test_top_level_message(self):
        assert extract_error_message(make_response({"message": "Not allowed"}, 403)) == "Not allowed"

    def test_nested_error(self):
        assert extract_error_message(make_response({"error": {"message": "Boom"}}, 500)) == "Boom"

    def test_non_json(self):
        response = make_response(status_code=502, raw=b"<html>")
        response.json.side_effect = ValueError("no json")

        assert extract_error_message(response) is None


class TestRequest:
    """Tests for the request transport."""

    def test_sends_token_and_timeout(self, client, session, shop):
        session.request.return_value = make_response({"data": {"flags": []}})

        result = client.list_flags(shop)

        assert result == {"data": {"flags": []}}
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://api.test/api/products/flags")
        assert kwargs["headers"]["Shoptet-Access-Token"] == "secret-token"
        assert kwargs["timeout"] == 5

    def test_missing_token_raises_configuration_error(self, client, session):
        shop = ShopFactory.create(id=3, api_access_token=None)

        with pytest.raises(ConfigurationError):
            client.list_flags(shop)

        session.request.assert_not_called()

    def test_http_error_uses_remote_message(self, client, session, shop):
        session.request.return_value = make_response({"errors": [{"message": "Category not found"}]}, 404)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.update_category(shop, "guid-1", {"description": None})

        assert exc_info.value.message == "Category not found"
        assert exc_info.value.code == "SHOPTET_UNAVAILABLE"
        assert exc_info.value.details["status"] == 404
        assert exc_info.value.details["shop_id"] == 2

    def test_http_error_without_message_uses_fallback(self, client, session, shop):
        session.request.return_value = make_response({}, 500)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.list_flags(shop)

        assert exc_info.value.message == FALLBACK_ERROR

    def test_timeout(self, client, session, shop):
        session.request.side_effect = requests.exceptions.Timeout("read timed out")

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.list_flags(shop)

        assert exc_info.value.status_code == 503
        assert "read timed out" in exc_info.value.details["error"]

    def test_malformed_json(self, client, session, shop):
        response = make_response(raw=b"not json")
        response.json.side_effect = ValueError("bad json")
        session.request.return_value = response

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.list_flags(shop)

        assert exc_info.value.message == "Shoptet returned a malformed response."

    def test_empty_body(self, client, session, shop):
        session.request.return_value = make_response()

        assert client.update_product(shop, "p-guid", {"defaultCategoryGuid": None}) == {}


class TestEndpoints:

    def test_pagination_concatenates_pages(self, client, session, shop):
        session.request.side_effect = [
            make_response({"data": {"filteringParameters": [{"code": "a"}], "paginator": {"pageCount": 2}}}),
            make_response({"data": {"filteringParameters": [{"code": "b"}], "paginator": {"pageCount": 2}}}),
        ]

        result = client.list_filtering_parameters(shop)

        assert [p["code"] for p in result["data"]["filteringParameters"]] == ["a", "b"]
        pages = [call.kwargs["params"]["page"] for call in session.request.call_args_list]
        assert pages == [1, 2]
        assert session.request.call_args_list[0].kwargs["params"]["itemsPerPage"] == 50

    def test_variant_parameters_include_values(self, client, session, shop):
        session.request.return_value = make_response({"data": {"parameters": []}})

        client.list_variant_parameters(shop)

        params = session.request.call_args.kwargs["params"]
        assert params["include"] == "values"

    def test_get_product_unwraps_data(self, client, session, shop):
        session.request.return_value = make_response({"data": {"guid": "p-1", "categories": []}})

        result = client.get_product(shop, "p-1", include="allCategories")

        assert result == {"guid": "p-1", "categories": []}
        assert session.request.call_args.kwargs["params"] == {"include": "allCategories"}

    def test_patch_wraps_payload_in_data(self, client, session, shop):
        session.request.return_value = make_response({"data": {}})

        client.update_product(shop, "p-1", {"defaultCategoryGuid": "c-1", "categoryGuids": ["c-1"]})

        args, kwargs = session.request.call_args
        assert args == ("PATCH", "https://api.test/api/products/p-1")
        assert kwargs["json"] == {"data": {"defaultCategoryGuid": "c-1", "categoryGuids": ["c-1"]}}


class TestMalformedPayloads:
    """Unexpected response shapes raise instead of reading as empty listings."""

    @pytest.mark.parametrize("body", [["x"], "text", 3])
    def test_non_object_body(self, client, session, shop, body):
        session.request.return_value = make_response(body)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.list_flags(shop)

        assert exc_info.value.message == MALFORMED_ERROR
        assert exc_info.value.details["shop_id"] == 2

    @pytest.mark.parametrize("body", [{"data": []}, {"data": ["x"]}, {"data": "x"}])
    def test_non_object_data(self, client, session, shop, body):
        session.request.return_value = make_response(body)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.list_filtering_parameters(shop)

        assert exc_info.value.code == "SHOPTET_UNAVAILABLE"
        assert exc_info.value.message == MALFORMED_ERROR

    def test_listing_without_data(self, client, session, shop):
        session.request.return_value = make_response({"errors": None})

        with pytest.raises(UpstreamUnavailableError):
            client.list_variant_parameters(shop)

    def test_collection_not_a_list(self, client, session, shop):
        session.request.return_value = make_response({"data": {"filteringParameters": {"code": "a"}}})

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.list_filtering_parameters(shop)

        assert exc_info.value.details["path"] == "/api/products/filtering-parameters"

    @pytest.mark.parametrize("paginator", [{"pageCount": "n/a"}, "2"])
    def test_bad_paginator(self, client, session, shop, paginator):
        session.request.return_value = make_response(
            {"data": {"filteringParameters": [], "paginator": paginator}}
        )

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            client.list_filtering_parameters(shop)

        assert exc_info.value.message == MALFORMED_ERROR
        assert exc_info.value.details["page"] == 1

    def test_null_data_is_accepted(self, client, session, shop):
        session.request.return_value = make_response({"data": None, "errors": None})

        assert client.update_category(shop, "guid-1", {"description": "x"}) == {"data": None, "errors": None}
