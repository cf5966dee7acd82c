# commentflow/infrastructure/clients/translation_api.py
"""
Translation API Client
LibreTranslate-compatible HTTP client (translate, detect, languages)
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from commentflow.app.config import get_config
from commentflow.domain.exceptions import RateLimitError, TranslationAPIError

logger = logging.getLogger(__name__)


class TranslateResponse(BaseModel):
    """POST /translate body"""

    model_config = ConfigDict(populate_by_name=True)

    translated_text: str = Field(alias="translatedText")


class DetectedLanguage(BaseModel):
    """One candidate of POST /detect"""

    language: str
    confidence: float = 0.0


class TranslationClient:
    """Async client for the translation service; one HTTP attempt per call"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_config().translation
        self.base_url = (base_url or settings.base_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.request_timeout,
            transport=transport,
        )

    def _payload(self, **fields: Any) -> Dict[str, Any]:
        if self.api_key:
            fields["api_key"] = self.api_key
        return fields

    def _check(self, response: httpx.Response, operation: str) -> Any:
        if response.status_code == 429:
            raise RateLimitError(f"Translation {operation} rate limited", status_code=429)

        if not response.is_success:
            raise TranslationAPIError(
                f"Translation {operation} failed with {response.status_code}",
                status_code=response.status_code,
                details={"body": response.text[:500]},
            )

        try:
            return response.json()
        except ValueError as e:
            raise TranslationAPIError(f"Translation {operation} returned invalid JSON") from e

    async def translate(self, text: str, source: str, target: str) -> str:
        """
        Translate one text

        Raises:
            TranslationAPIError: Non-2xx status or body without translatedText
            RateLimitError: HTTP 429
            httpx.TransportError: Network failure / timeout
        """
        response = await self.client.post(
            "/translate",
            json=self._payload(q=text, source=source, target=target, format="text"),
        )
        data = self._check(response, "translate")

        try:
            return TranslateResponse.model_validate(data).translated_text
        except ValidationError as e:
            raise TranslationAPIError(f"Malformed translation response: {data!r}") from e

    async def detect(self, text: str) -> str:
        """Most likely language code of ``text``"""
        response = await self.client.post("/detect", json=self._payload(q=text))
        data = self._check(response, "detect")

        try:
            candidates = [DetectedLanguage.model_validate(item) for item in data]
        except (TypeError, ValidationError) as e:
            raise TranslationAPIError(f"Malformed detect response: {data!r}") from e

        if not candidates:
            raise TranslationAPIError("Language detection returned no candidates")
        return max(candidates, key=lambda c: c.confidence).language

    async def languages(self) -> List[Dict[str, Any]]:
        response = await self.client.get("/languages")
        return self._check(response, "languages")

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> "TranslationClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


def create_translation_client(**kwargs: Any) -> TranslationClient:
    """Factory function to create the translation client"""
    return TranslationClient(**kwargs)
