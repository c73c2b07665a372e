"""
Image hosting on S3.

Post covers arrive as a base64 data URI (what the mobile client sends), a bare
base64 string, or an http(s) URL. They are stored in the configured bucket
and the public URL of the object is what the catalog keeps.

URL sources are fetched by this server, so they are limited to public
addresses and to `image_max_bytes`.
"""

import asyncio
import base64
import binascii
import ipaddress
import mimetypes
import re
import socket
import uuid
from typing import Dict, List, Optional, Tuple, Union

import boto3
import httpx
import structlog

from utilities.config import AppConfig
from utilities.errors import ValidationError

logger = structlog.get_logger(__name__)

KEY_PREFIX = "books/"
DEFAULT_CONTENT_TYPE = "image/jpeg"

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^;,]+)*);base64,(?P<payload>.*)$", re.DOTALL)


def decode_data_uri(source: str) -> Tuple[bytes, str]:
    """
    Decode a ``data:<mime>;base64,<payload>`` URI or a bare base64 string.

    Returns:
        (content, content_type)

    Raises:
        ValidationError: if the payload is not valid base64
    """
    match = _DATA_URI.match(source.strip())
    if match:
        payload = match.group("payload")
        content_type = match.group("mime") or DEFAULT_CONTENT_TYPE
    else:
        payload = source.strip()
        content_type = DEFAULT_CONTENT_TYPE

    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image must be a base64 data URI or an http(s) URL")
    if not content:
        raise ValidationError("Image is empty")
    return content, content_type


class ImageHost:
    """Uploads and deletes post images in an S3 bucket."""

    def __init__(self, config: AppConfig, client=None, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize image host.

        Args:
            config: Application configuration (bucket, region, fetch limits)
            client: boto3 S3 client; built from the AWS settings by default
            transport: httpx transport used to fetch image URLs
        """
        self.bucket = config.aws_s3_bucket_name
        self.region = config.aws_region
        self.fetch_timeout = config.image_fetch_timeout
        self.max_bytes = config.image_max_bytes
        self.max_redirects = config.image_fetch_max_redirects
        self.base_url = (config.image_base_url or f"https://{self.bucket}.s3.{self.region}.amazonaws.com").rstrip("/")
        self.client = client or boto3.client(
            "s3",
            aws_access_key_id=config.aws_access_key_id,
            aws_secret_access_key=config.aws_secret_access_key,
            region_name=config.aws_region,
        )
        self.transport = transport
        self.logger = logger.bind(component="image_host")

    async def upload(self, source: str) -> str:
        """
        Store an image and return its stable public URL.

        Raises:
            ValidationError: if ``source`` cannot be turned into image bytes,
                is larger than ``image_max_bytes``, or is a URL on a non-public host
        """
        if not source:
            raise ValidationError("Image is required")

        if source.startswith(("http://", "https://")):
            content, content_type = await self._download(source)
        else:
            content, content_type = decode_data_uri(source)
            if len(content) > self.max_bytes:
                raise ValidationError("Image is too large")

        key = f"{KEY_PREFIX}{uuid.uuid4().hex}{mimetypes.guess_extension(content_type) or ''}"
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=self.bucket,
            Key=key,
            Body=content,
            ContentType=content_type,
        )
        self.logger.info("Uploaded image", key=key, size=len(content), content_type=content_type)
        return f"{self.base_url}/{key}"

    def key_for(self, url: str) -> Optional[str]:
        """Object key for a URL this host produced, else None."""
        prefix = f"{self.base_url}/"
        if not url or not url.startswith(prefix):
            return None
        key = url[len(prefix):].split("?", 1)[0]
        return key or None

    def owns(self, url: str) -> bool:
        return self.key_for(url) is not None

    async def delete(self, url: str) -> None:
        """Delete the object behind ``url``. URLs hosted elsewhere are ignored."""
        key = self.key_for(url)
        if key is None:
            self.logger.debug("Image not hosted here, nothing to delete", url=url)
            return
        await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        self.logger.info("Deleted image", key=key)

    async def _download(self, url: str) -> Tuple[bytes, str]:
        """
        Fetch an image URL on behalf of a client.

        Every hop is resolved and checked before connecting, and the connection
        goes to the checked address. Redirects are followed by hand so each
        target gets the same check.
        """
        try:
            target = httpx.URL(url)
        except httpx.InvalidURL:
            raise ValidationError("Image URL is not valid")
        async with httpx.AsyncClient(timeout=self.fetch_timeout, transport=self.transport) as client:
            for _ in range(self.max_redirects + 1):
                address = await self._public_address(target)
                request_url, headers, extensions = _pin(target, address)
                try:
                    async with client.stream("GET", request_url, headers=headers, extensions=extensions) as response:
                        if response.is_redirect:
                            target = target.join(response.headers["location"])
                            continue
                        response.raise_for_status()

                        content_type = response.headers.get("content-type", DEFAULT_CONTENT_TYPE).split(";", 1)[0].strip()
                        if not content_type.startswith("image/"):
                            raise ValidationError("Image URL does not point to an image")
                        return await self._read_capped(response), content_type
                except (httpx.HTTPError, httpx.InvalidURL) as e:
                    self.logger.warning("Failed to fetch image", url=str(target), error=str(e))
                    raise ValidationError("Image URL could not be fetched")

        self.logger.warning("Image URL redirected too many times", url=url)
        raise ValidationError("Image URL could not be fetched")

    async def _public_address(self, url: httpx.URL) -> IPAddress:
        if url.scheme not in ("http", "https") or not url.host:
            raise ValidationError("Image URL must be an http(s) URL")

        port = url.port or (443 if url.scheme == "https" else 80)
        addresses = await resolve_addresses(url.host, port)
        blocked = [str(address) for address in addresses if not is_public_address(address)]
        if not addresses or blocked:
            self.logger.warning("Refused image URL on a non-public address", url=str(url), addresses=blocked)
            raise ValidationError("Image URL must point to a public host")
        return addresses[0]

    async def _read_capped(self, response: httpx.Response) -> bytes:
        declared = response.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.max_bytes:
            raise ValidationError("Image is too large")

        content = bytearray()
        async for chunk in response.aiter_bytes():
            content.extend(chunk)
            if len(content) > self.max_bytes:
                raise ValidationError("Image is too large")
        if not content:
            raise ValidationError("Image is empty")
        return bytes(content)


def is_public_address(address: IPAddress) -> bool:
    """False for loopback, private, link-local, reserved and multicast addresses."""
    return address.is_global and not address.is_multicast


async def resolve_addresses(host: str, port: int) -> List[IPAddress]:
    """Every address ``host`` resolves to. IP literals resolve to themselves."""
    try:
        return [ipaddress.ip_address(host)]
    except ValueError:
        pass

    try:
        infos = await asyncio.get_running_loop().getaddrinfo(host, port, type=socket.SOCK_STREAM)
    except socket.gaierror:
        raise ValidationError("Image URL host could not be resolved")
    return [ipaddress.ip_address(info[4][0].split("%", 1)[0]) for info in infos]


def _pin(url: httpx.URL, address: IPAddress) -> Tuple[httpx.URL, Dict[str, str], Dict[str, str]]:
    """Point ``url`` at ``address`` while keeping the Host header and TLS name of the original host."""
    try:
        ipaddress.ip_address(url.host)
        return url, {}, {}
    except ValueError:
        pass

    host_header = url.host if url.port is None else f"{url.host}:{url.port}"
    pinned_host = f"[{address}]" if address.version == 6 else str(address)
    return url.copy_with(host=pinned_host), {"Host": host_header}, {"sni_hostname": url.host}
