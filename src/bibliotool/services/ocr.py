"""
Datalab OCR client.

Uploads a PDF to the Marker endpoint and polls the returned check URL
until the markdown is ready. Polling is bounded: after max_polls checks
the job is abandoned with an OcrError, so a stuck conversion never blocks
a tool call forever.
"""

import asyncio
import logging
from typing import Any

import httpx

from bibliotool.config import ServiceConfig
from bibliotool.services.http import ServiceError, default_timeout, json_body, request_with_retry

logger = logging.getLogger(__name__)


class OcrError(ServiceError):
    """Error from the OCR service."""
    pass


class DatalabOcrClient:
    """Async client for Datalab's Marker PDF-to-markdown API."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "https://www.datalab.to/api/v1",
        poll_interval: float = 2.0,
        max_polls: int = 300,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self._client = client or httpx.AsyncClient(timeout=default_timeout(read=120.0))

    @classmethod
    def from_config(cls, config: ServiceConfig) -> "DatalabOcrClient":
        return cls(
            api_key=config.datalab_api_key,
            base_url=config.datalab_base_url,
            poll_interval=config.ocr_poll_interval,
            max_polls=config.ocr_max_polls,
        )

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-Api-Key": self.api_key}

    async def convert_pdf(self, pdf: bytes, filename: str = "document.pdf") -> str:
        """
        Convert a PDF to markdown.

        Raises:
            OcrError: If the upload is rejected, the job fails, or polling times out
        """
        if not self.is_configured():
            raise OcrError("Datalab API key is not configured")

        logger.info(f"Submitting {filename} ({len(pdf)} bytes) for OCR")
        response = await request_with_retry(
            self._client,
            "POST",
            f"{self.base_url}/marker",
            headers=self._headers,
            files={"file": (filename, pdf, "application/pdf")},
            data={"force_ocr": "true", "use_llm": "false", "output_format": "markdown"},
            error_cls=OcrError,
        )
        upload = json_body(response, OcrError)
        check_url = upload.get("request_check_url")
        if not upload.get("success") or not check_url:
            raise OcrError(f"OCR upload rejected: {upload.get('error') or 'no check URL returned'}")

        return await self._poll(check_url)

    async def download_pdf(self, url: str) -> bytes:
        """Fetch a PDF (e.g. an open access copy) for conversion."""
        response = await request_with_retry(
            self._client, "GET", url, follow_redirects=True, error_cls=OcrError
        )
        return response.content

    async def _poll(self, check_url: str) -> str:
        for attempt in range(self.max_polls):
            await asyncio.sleep(self.poll_interval)
            response = await request_with_retry(
                self._client, "GET", check_url, headers=self._headers, error_cls=OcrError
            )
            result: dict[str, Any] = json_body(response, OcrError)
            status = result.get("status")
            if status == "complete":
                logger.info(f"OCR complete after {attempt + 1} polls")
                return result.get("markdown") or ""
            if status == "failed":
                raise OcrError(f"OCR failed: {result.get('error') or 'unknown error'}")
            logger.debug(f"OCR status {status} (poll {attempt + 1}/{self.max_polls})")

        raise OcrError(f"Polling timed out after {self.max_polls} checks")

    async def aclose(self) -> None:
        await self._client.aclose()
