"""
HTTP clients for external collaborators
"""

from commentflow.infrastructure.clients.content_source import (
    ContentSourceClient,
    SourceComment,
    SourcePost,
    SourceUser,
    create_content_source_client,
)
from commentflow.infrastructure.clients.translation_api import (
    TranslationClient,
    create_translation_client,
)

__all__ = [
    "ContentSourceClient",
    "SourceComment",
    "SourcePost",
    "SourceUser",
    "create_content_source_client",
    "TranslationClient",
    "create_translation_client",
]
