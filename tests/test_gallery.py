"""
Tests for the marketplace client, against httpx.MockTransport.
"""

import json

import httpx
import pytest

from extctl.core.config import GalleryConfig
from extctl.core.errors import TransportError
from extctl.extensions import GalleryExtension
from extctl.extensions.gallery import (
    FILTER_EXTENSION_NAME,
    FILTER_SEARCH_TEXT,
    PACKAGE_ASSET,
    ExtensionGalleryService,
    build_query,
    parse_query_result,
)

SERVICE_URL = "https://gallery.test/_apis/public/gallery"


def _raw_extension(publisher, name, version="1.0.0", files=True):
    entry = {
        "extensionId": f"id-{name}",
        "extensionName": name,
        "displayName": name.title(),
        "shortDescription": f"{name} description",
        "publisher": {"publisherName": publisher},
        "versions": [{
            "version": version,
            "assetUri": f"https://cdn.test/{publisher}/{name}/{version}",
        }],
    }
    if files:
        entry["versions"][0]["files"] = [
            {"assetType": "Microsoft.VisualStudio.Services.Icons.Default", "source": "https://cdn.test/icon"},
            {"assetType": PACKAGE_ASSET, "source": f"https://cdn.test/{name}.vsix"},
        ]
    return entry


def _response(*extensions, total=None):
    return {
        "results": [{
            "extensions": list(extensions),
            "resultMetadata": [{
                "metadataType": "ResultCount",
                "metadataItems": [{"name": "TotalCount", "count": total if total is not None else len(extensions)}],
            }],
        }],
    }


def _service(handler, **config):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ExtensionGalleryService(GalleryConfig(service_url=SERVICE_URL, **config), client=client)


# ─────────────────────────────────────────────────────────────
# Query body / parsing
# ─────────────────────────────────────────────────────────────

class TestQueryBody:

    def test_names_use_exact_name_filter(self):
        body = build_query(names=["acme.foo"], page_size=5)
        criteria = body["filters"][0]["criteria"]
        assert {"filterType": FILTER_EXTENSION_NAME, "value": "acme.foo"} in criteria
        assert body["filters"][0]["pageSize"] == 5
        assert body["filters"][0]["pageNumber"] == 1

    def test_text_search(self):
        criteria = build_query(text="python")["filters"][0]["criteria"]
        assert {"filterType": FILTER_SEARCH_TEXT, "value": "python"} in criteria


class TestParse:

    def test_maps_entries_in_order(self):
        page = parse_query_result(_response(_raw_extension("acme", "foo", "2.0.0"), _raw_extension("zeta", "bar")))
        assert [e.identifier for e in page.first_page] == ["acme.foo", "zeta.bar"]
        assert page.first_page[0].version == "2.0.0"
        assert page.first_page[0].download_url == "https://cdn.test/foo.vsix"
        assert page.first_page[0].display_name == "Foo"

    def test_total_from_metadata(self):
        page = parse_query_result(_response(_raw_extension("acme", "foo"), total=42))
        assert page.total == 42

    def test_download_url_falls_back_to_asset_uri(self):
        page = parse_query_result(_response(_raw_extension("acme", "foo", "1.2.3", files=False)))
        assert page.first_page[0].download_url == f"https://cdn.test/acme/foo/1.2.3/{PACKAGE_ASSET}"

    def test_entries_without_versions_are_skipped(self):
        broken = _raw_extension("acme", "broken")
        broken["versions"] = []
        page = parse_query_result(_response(broken, _raw_extension("acme", "ok")))
        assert [e.identifier for e in page.first_page] == ["acme.ok"]

    @pytest.mark.parametrize("payload", [{}, {"results": []}, {"results": [{}]}, []])
    def test_empty_payloads(self, payload):
        assert parse_query_result(payload).first_page == []


# ─────────────────────────────────────────────────────────────
# HTTP behaviour
# ─────────────────────────────────────────────────────────────

class TestQueryHttp:

    @pytest.mark.asyncio
    async def test_posts_to_extensionquery(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=_response(_raw_extension("acme", "foo")))

        async with _service(handler) as service:
            page = await service.query(names=["acme.foo"])

        assert seen[0].method == "POST"
        assert str(seen[0].url) == f"{SERVICE_URL}/extensionquery"
        body = json.loads(seen[0].content)
        assert {"filterType": FILTER_EXTENSION_NAME, "value": "acme.foo"} in body["filters"][0]["criteria"]
        assert page.first_page[0].identifier == "acme.foo"

    @pytest.mark.asyncio
    async def test_http_error_keeps_body(self):
        def handler(request):
            return httpx.Response(429, text='{"message":"quota exceeded"}')

        async with _service(handler) as service:
            with pytest.raises(TransportError) as exc_info:
                await service.query(names=["acme.foo"])

        assert exc_info.value.response_text == '{"message":"quota exceeded"}'
        assert "429" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_error_has_no_body(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _service(handler) as service:
            with pytest.raises(TransportError) as exc_info:
                await service.query(names=["acme.foo"])

        assert exc_info.value.response_text is None

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with _service(handler, timeout=3.0) as service:
            with pytest.raises(TransportError, match="timed out after 3.0s"):
                await service.query(names=["acme.foo"])

    @pytest.mark.asyncio
    async def test_non_json_success_is_transport_error(self):
        def handler(request):
            return httpx.Response(200, text="<html>maintenance</html>")

        async with _service(handler) as service:
            with pytest.raises(TransportError) as exc_info:
                await service.query(names=["acme.foo"])

        assert exc_info.value.response_text == "<html>maintenance</html>"


class TestDownload:

    @pytest.mark.asyncio
    async def test_writes_package(self, tmp_path):
        def handler(request):
            assert str(request.url) == "https://cdn.test/foo.vsix"
            return httpx.Response(200, content=b"PK-bytes")

        extension = GalleryExtension(
            publisher="acme", name="foo", version="1.0.0", download_url="https://cdn.test/foo.vsix"
        )
        async with _service(handler) as service:
            path = await service.download(extension, tmp_path)

        assert path == tmp_path / "acme.foo-1.0.0.vsix"
        assert path.read_bytes() == b"PK-bytes"

    @pytest.mark.asyncio
    async def test_streams_large_package_in_chunks(self, tmp_path):
        payload = bytes(range(256)) * 4096

        async def chunks():
            for start in range(0, len(payload), 65536):
                yield payload[start:start + 65536]

        def handler(request):
            return httpx.Response(200, content=chunks())

        extension = GalleryExtension(
            publisher="acme", name="big", version="2.0.0", download_url="https://cdn.test/big.vsix"
        )
        async with _service(handler) as service:
            path = await service.download(extension, tmp_path)

        assert path.read_bytes() == payload

    @pytest.mark.asyncio
    async def test_missing_package_raises(self, tmp_path):
        def handler(request):
            return httpx.Response(404, text="gone")

        extension = GalleryExtension(
            publisher="acme", name="foo", version="1.0.0", download_url="https://cdn.test/foo.vsix"
        )
        async with _service(handler) as service:
            with pytest.raises(TransportError, match="HTTP 404"):
                await service.download(extension, tmp_path)
