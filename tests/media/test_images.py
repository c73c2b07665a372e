"""
Tests for S3 image hosting.
"""

import base64
from ipaddress import ip_address
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from media.images import ImageHost, decode_data_uri, is_public_address, resolve_addresses
from utilities.errors import ValidationError

PNG_BYTES = b"\x89PNG\r\n\x1a\n0000"
BASE_URL = "https://test-bucket.s3.us-east-1.amazonaws.com"
COVER_URL = "https://covers.example.com/dune.png"
PUBLIC_IP = "93.184.216.34"


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def image_host(test_config, s3_client):
    return ImageHost(test_config, client=s3_client)


@pytest.fixture
def public_dns():
    """Resolve every hostname to a public address."""
    with patch("media.images.resolve_addresses", AsyncMock(return_value=[ip_address(PUBLIC_IP)])) as resolver:
        yield resolver


@pytest.fixture
def fetched():
    """Requests seen by the fake remote server."""
    return []


@pytest.fixture
def url_host(test_config, s3_client, fetched):
    """Factory for an ImageHost whose URL fetches are answered by ``handler``."""
    def _make(handler, **overrides):
        def recording_handler(request):
            fetched.append(request)
            return handler(request)

        config = test_config.model_copy(update=overrides) if overrides else test_config
        return ImageHost(config, client=s3_client, transport=httpx.MockTransport(recording_handler))
    return _make


def png_response(request):
    return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})


class TestDecodeDataUri:
    """Test cases for data URI decoding."""

    def test_data_uri(self):
        encoded = base64.b64encode(PNG_BYTES).decode()
        content, content_type = decode_data_uri(f"data:image/png;base64,{encoded}")
        assert content == PNG_BYTES
        assert content_type == "image/png"

    def test_bare_base64_defaults_to_jpeg(self):
        content, content_type = decode_data_uri(base64.b64encode(PNG_BYTES).decode())
        assert content == PNG_BYTES
        assert content_type == "image/jpeg"

    @pytest.mark.parametrize("source", ["data:image/png;base64,@@not base64@@", "!!!", "data:image/png;base64,"])
    def test_invalid_payload(self, source):
        with pytest.raises(ValidationError):
            decode_data_uri(source)


class TestAddressChecks:
    """Test cases for the public-address guard."""

    @pytest.mark.parametrize("address", [
        "127.0.0.1", "10.0.0.5", "172.16.3.4", "192.168.1.1", "169.254.169.254",
        "0.0.0.0", "224.0.0.1", "::1", "fe80::1", "fd00::1", "::ffff:127.0.0.1",
    ])
    def test_non_public_addresses(self, address):
        assert not is_public_address(ip_address(address))

    @pytest.mark.parametrize("address", [PUBLIC_IP, "8.8.8.8", "2606:4700:4700::1111"])
    def test_public_addresses(self, address):
        assert is_public_address(ip_address(address))

    @pytest.mark.asyncio
    async def test_ip_literal_resolves_to_itself(self):
        assert await resolve_addresses("10.0.0.1", 80) == [ip_address("10.0.0.1")]


class TestImageHost:
    """Test cases for ImageHost."""

    @pytest.mark.asyncio
    async def test_upload_data_uri(self, image_host, s3_client):
        encoded = base64.b64encode(PNG_BYTES).decode()

        url = await image_host.upload(f"data:image/png;base64,{encoded}")

        kwargs = s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "test-bucket"
        assert kwargs["Key"].startswith("books/")
        assert kwargs["Key"].endswith(".png")
        assert kwargs["Body"] == PNG_BYTES
        assert kwargs["ContentType"] == "image/png"
        assert url == f"{BASE_URL}/{kwargs['Key']}"

    @pytest.mark.asyncio
    async def test_each_upload_gets_its_own_key(self, image_host):
        encoded = base64.b64encode(PNG_BYTES).decode()
        first = await image_host.upload(f"data:image/png;base64,{encoded}")
        second = await image_host.upload(f"data:image/png;base64,{encoded}")
        assert first != second

    @pytest.mark.asyncio
    async def test_upload_invalid_data(self, image_host, s3_client):
        with pytest.raises(ValidationError):
            await image_host.upload("data:image/png;base64,@@@")
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_upload_data_uri_over_size_limit(self, test_config, s3_client):
        host = ImageHost(test_config.model_copy(update={"image_max_bytes": 8}), client=s3_client)
        encoded = base64.b64encode(PNG_BYTES).decode()

        with pytest.raises(ValidationError):
            await host.upload(f"data:image/png;base64,{encoded}")
        s3_client.put_object.assert_not_called()

    def test_key_for(self, image_host):
        assert image_host.key_for(f"{BASE_URL}/books/abc.png") == "books/abc.png"
        assert image_host.key_for(f"{BASE_URL}/books/abc.png?v=2") == "books/abc.png"
        assert image_host.key_for("https://elsewhere.example.com/books/abc.png") is None
        assert image_host.key_for("") is None

    def test_owns(self, image_host):
        assert image_host.owns(f"{BASE_URL}/books/abc.png")
        assert not image_host.owns("https://elsewhere.example.com/abc.png")

    def test_custom_base_url(self, test_config, s3_client):
        config = test_config.model_copy(update={"image_base_url": "https://cdn.example.com/"})
        host = ImageHost(config, client=s3_client)
        assert host.owns("https://cdn.example.com/books/abc.png")
        assert not host.owns(f"{BASE_URL}/books/abc.png")

    @pytest.mark.asyncio
    async def test_delete(self, image_host, s3_client):
        await image_host.delete(f"{BASE_URL}/books/abc.png")
        s3_client.delete_object.assert_called_once_with(Bucket="test-bucket", Key="books/abc.png")

    @pytest.mark.asyncio
    async def test_delete_foreign_url_is_skipped(self, image_host, s3_client):
        await image_host.delete("https://elsewhere.example.com/books/abc.png")
        s3_client.delete_object.assert_not_called()


class TestUrlSources:
    """Test cases for images fetched from a URL."""

    @pytest.mark.asyncio
    async def test_upload_from_url(self, url_host, public_dns, fetched, s3_client):
        url = await url_host(png_response).upload(COVER_URL)

        assert url.startswith(f"{BASE_URL}/books/")
        assert s3_client.put_object.call_args.kwargs["Body"] == PNG_BYTES
        # connection goes to the checked address, the remote still sees its own name
        assert fetched[0].url.host == PUBLIC_IP
        assert fetched[0].headers["host"] == "covers.example.com"
        public_dns.assert_awaited_once_with("covers.example.com", 443)

    @pytest.mark.asyncio
    async def test_url_that_is_not_an_image(self, url_host, public_dns, s3_client):
        def html_response(request):
            return httpx.Response(200, content=b"<html></html>", headers={"content-type": "text/html; charset=utf-8"})

        with pytest.raises(ValidationError):
            await url_host(html_response).upload("https://covers.example.com/page.html")
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_unreachable_url(self, url_host, public_dns, s3_client):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ValidationError):
            await url_host(refuse).upload(COVER_URL)
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_error_status(self, url_host, public_dns, s3_client):
        with pytest.raises(ValidationError):
            await url_host(lambda request: httpx.Response(404)).upload(COVER_URL)
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("source", [
        "http://127.0.0.1:8080/latest/meta-data/iam",
        "http://169.254.169.254/latest/meta-data/",
        "http://10.0.0.5/cover.png",
        "http://192.168.1.1/cover.png",
        "http://[::1]/cover.png",
    ])
    async def test_internal_address_is_never_fetched(self, url_host, fetched, s3_client, source):
        with pytest.raises(ValidationError):
            await url_host(png_response).upload(source)

        assert fetched == []
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_hostname_resolving_to_private_address(self, url_host, fetched, s3_client):
        with patch("media.images.resolve_addresses", AsyncMock(return_value=[ip_address("10.0.0.7")])):
            with pytest.raises(ValidationError):
                await url_host(png_response).upload("https://intranet.example.com/cover.png")

        assert fetched == []
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_redirect_to_internal_address_is_refused(self, url_host, public_dns, fetched, s3_client):
        def redirect(request):
            return httpx.Response(302, headers={"location": "http://169.254.169.254/latest/meta-data/"})

        with pytest.raises(ValidationError):
            await url_host(redirect).upload(COVER_URL)

        assert len(fetched) == 1
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_relative_redirect_is_followed(self, url_host, public_dns, fetched, s3_client):
        def moved_once(request):
            if request.url.path == "/dune.png":
                return httpx.Response(301, headers={"location": "/covers/dune.png"})
            return png_response(request)

        await url_host(moved_once).upload(COVER_URL)

        assert [request.url.path for request in fetched] == ["/dune.png", "/covers/dune.png"]
        assert fetched[1].headers["host"] == "covers.example.com"
        assert public_dns.await_count == 2
        assert s3_client.put_object.call_args.kwargs["Body"] == PNG_BYTES

    @pytest.mark.asyncio
    async def test_too_many_redirects(self, url_host, public_dns, fetched, s3_client):
        def loop(request):
            return httpx.Response(302, headers={"location": COVER_URL})

        with pytest.raises(ValidationError):
            await url_host(loop, image_fetch_max_redirects=2).upload(COVER_URL)

        assert len(fetched) == 3
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_declared_size_over_limit(self, url_host, public_dns, s3_client):
        with pytest.raises(ValidationError) as exc_info:
            await url_host(png_response, image_max_bytes=8).upload(COVER_URL)

        assert exc_info.value.message == "Image is too large"
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_streamed_size_over_limit(self, url_host, public_dns, s3_client):
        async def endless_body():
            for _ in range(1000):
                yield b"0" * 1024

        def chunked(request):
            return httpx.Response(200, content=endless_body(), headers={"content-type": "image/png"})

        with pytest.raises(ValidationError) as exc_info:
            await url_host(chunked, image_max_bytes=4096).upload(COVER_URL)

        assert exc_info.value.message == "Image is too large"
        s3_client.put_object.assert_not_called()

    @pytest.mark.asyncio
    async def test_redirect_to_malformed_location(self, url_host, public_dns, s3_client):
        def broken_redirect(request):
            return httpx.Response(302, headers={"location": "http://covers.example.com:notaport/dune.png"})

        with pytest.raises(ValidationError):
            await url_host(broken_redirect).upload(COVER_URL)
        s3_client.put_object.assert_not_called()
