# commentflow/services/translation_service.py
"""
Translation Service
Memoized, circuit-breaker protected translation that never fails the caller
"""

import hashlib
import logging
from typing import List, Optional

from commentflow.app.config import TranslationSettings, get_config
from commentflow.domain.exceptions import CircuitOpenError, TranslationAPIError
from commentflow.domain.interfaces import TranslationBackend
from commentflow.infrastructure.cache import CacheType, InvalidationTrigger, TypedCache
from commentflow.infrastructure.resilience import CircuitBreaker

logger = logging.getLogger(__name__)

DEFAULT_DETECTED_LANGUAGE = "en"


def text_hash(text: str, source: str, target: str) -> str:
    """Cache key of a translation: SHA-256 of the language pair and text"""
    return hashlib.sha256(f"{source}:{target}:{text}".encode("utf-8")).hexdigest()


class TranslationService:
    """
    Translate comment text

    Successful translations are cached forever under the ``translation``
    cache type. Any failure returns the original text; failures are not
    cached so a later call can still translate.
    """

    def __init__(
        self,
        client: TranslationBackend,
        cache: TypedCache,
        breaker: CircuitBreaker,
        settings: Optional[TranslationSettings] = None,
    ):
        self.client = client
        self.cache = cache
        self.breaker = breaker
        self.settings = settings or get_config().translation

    async def translate(
        self, text: str, source: Optional[str] = None, target: Optional[str] = None
    ) -> str:
        """
        Translate text, falling back to the input on any failure

        Args:
            text: Text to translate
            source: Source language ("auto" to detect)
            target: Target language

        Returns:
            Translated text, or ``text`` unchanged
        """
        if not text or not text.strip():
            return text

        source = source or self.settings.source_language
        target = target or self.settings.target_language
        key = text_hash(text, source, target)

        cached = self.cache.read(key, CacheType.TRANSLATION)
        if cached is not None:
            return cached

        if source == "auto" and self.settings.detect_language:
            detected = await self.detect_language(text)
            if detected == target:
                logger.debug(f"Text already in '{target}', skipping translation")
                self.cache.write(key, text, CacheType.TRANSLATION)
                return text

        try:
            translated = await self.breaker.call(self._translate_text, text, source, target)
        except CircuitOpenError as e:
            logger.warning(f"⚠️ Translation skipped, circuit open: {e.message}")
            return text
        except Exception as e:
            logger.warning(
                f"⚠️ Translation failed, keeping original text: {type(e).__name__}: {e}"
            )
            return text

        self.cache.write(key, translated, CacheType.TRANSLATION)
        return translated

    async def _translate_text(self, text: str, source: str, target: str) -> str:
        # An empty body counts against the breaker like any API failure
        translated = await self.client.translate(text, source, target)
        if not translated or not translated.strip():
            raise TranslationAPIError(
                "Translation service returned empty text",
                details={"source": source, "target": target},
            )
        return translated

    async def detect_language(self, text: str) -> str:
        """Detected language code, ``"en"`` when detection fails"""
        try:
            return await self.breaker.call(self.client.detect, text)
        except Exception as e:
            logger.debug(f"Language detection failed ({type(e).__name__}), assuming en")
            return DEFAULT_DETECTED_LANGUAGE

    async def translate_batch(
        self,
        texts: List[str],
        source: Optional[str] = None,
        target: Optional[str] = None,
    ) -> List[str]:
        """Translate texts in order; each item falls back independently"""
        return [await self.translate(text, source, target) for text in texts]

    async def is_available(self) -> bool:
        """Whether the translation service answers its language listing"""
        try:
            await self.breaker.call(self.client.languages)
            return True
        except Exception as e:
            logger.warning(f"⚠️ Translation service unavailable: {type(e).__name__}")
            return False

    def evict(
        self, text: str, source: Optional[str] = None, target: Optional[str] = None
    ) -> bool:
        """Manually drop one cached translation"""
        key = text_hash(
            text,
            source or self.settings.source_language,
            target or self.settings.target_language,
        )
        return self.cache.invalidate(InvalidationTrigger.TRANSLATION_UPDATE, text_hash=key) > 0
