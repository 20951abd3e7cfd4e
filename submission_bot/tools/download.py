"""Attachment download with a hard byte ceiling."""

from __future__ import annotations

import logging

import httpx

from submission_bot.errors import InputTooLargeError, NetworkError


logger = logging.getLogger(__name__)

DOWNLOAD_FAILED_MESSAGE = "Failed to download the theme. Please try again"


class AttachmentDownloader:
    """Streams attachments to disk, aborting once they exceed the ceiling."""
    
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self._client = client
        self.timeout = timeout
    
    async def download(
        self,
        url: str,
        destination: str,
        max_bytes: int,
        expected_size: int = 0,
    ) -> int:
        """Download ``url`` into ``destination``.
        
        Args:
            url: Attachment URL
            destination: File path to write
            max_bytes: Size ceiling in bytes
            expected_size: Declared size, checked after download when non-zero
            
        Returns:
            Number of bytes written
        """
        client = self._client or httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        
        try:
            return await self._stream(client, url, destination, max_bytes, expected_size)
        except httpx.HTTPError as e:
            logger.error(f"Download of {url} failed: {e}")
            raise NetworkError(DOWNLOAD_FAILED_MESSAGE) from e
        finally:
            if self._client is None:
                await client.aclose()
    
    async def _stream(
        self,
        client: httpx.AsyncClient,
        url: str,
        destination: str,
        max_bytes: int,
        expected_size: int,
    ) -> int:
        written = 0
        
        async with client.stream("GET", url) as response:
            response.raise_for_status()
            
            content_length = response.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > max_bytes:
                raise InputTooLargeError(max_bytes)
            
            with open(destination, "wb") as f:
                async for chunk in response.aiter_bytes():
                    written += len(chunk)
                    if written > max_bytes:
                        raise InputTooLargeError(max_bytes)
                    f.write(chunk)
        
        if expected_size and written != expected_size:
            logger.warning(f"Downloaded {written} bytes from {url}, expected {expected_size}")
            raise NetworkError(DOWNLOAD_FAILED_MESSAGE)
        
        return written
