"""Text-extraction adapters for statement documents.

Defines the TextExtractor protocol plus two implementations:
- PlainTextExtractor: reads already-decoded UTF-8 text files.
- HttpTextExtractor: posts the document to a text-layer service via httpx.

The engine never calls these; the CLI does.  Unlike every other failure in
SubScan, extraction failure is fatal for the document and raises
:class:`ExtractionFailed`.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Protocol

import httpx

from subscan.models import ExtractionConfig
from subscan.statement import MONEY_RE

logger = logging.getLogger(__name__)

# Fewer money tokens than this and a text layer is considered weak.
WEAK_TEXT_MONEY_TOKENS = 5


class ExtractionFailed(Exception):
    """The document's text could not be obtained."""


class TextExtractor(Protocol):
    """Protocol for turning a statement document into plain text."""

    def extract_text(self, path: Path) -> str: ...


class PlainTextExtractor:
    """Read a statement that is already plain UTF-8 text."""

    def extract_text(self, path: Path) -> str:
        try:
            return Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ExtractionFailed(f"Cannot read {path}: {exc}") from exc


class HttpTextExtractor:
    """Extractor that posts documents to a text-layer service via httpx.

    The document is sent as a multipart upload under the ``file`` field.
    The service must answer with JSON of the form ``{"text": "..."}``; page
    breaks inside the text are plain newlines.

    Args:
        url: Endpoint of the text-layer service.
        api_key_env: Name of the environment variable containing the API
            key, sent as a bearer token.  Empty means no key is sent.
        timeout: HTTP request timeout in seconds. Default: 60.
    """

    def __init__(self, url: str, api_key_env: str = "", timeout: float = 60.0) -> None:
        self.url = url
        self.api_key_env = api_key_env
        self.timeout = timeout

    def extract_text(self, path: Path) -> str:
        """Upload *path* and return the service's text layer.

        Raises:
            ExtractionFailed: On a missing URL or API key, unreadable file,
                network error, HTTP error, or malformed response.
        """
        if not self.url:
            raise ExtractionFailed("No extraction service URL configured")

        headers = {}
        if self.api_key_env:
            api_key = os.environ.get(self.api_key_env, "")
            if not api_key:
                raise ExtractionFailed(
                    f"API key not found in environment variable '{self.api_key_env}'"
                )
            headers["authorization"] = f"Bearer {api_key}"

        path = Path(path)
        try:
            content = path.read_bytes()
        except OSError as exc:
            raise ExtractionFailed(f"Cannot read {path}: {exc}") from exc

        try:
            response = httpx.post(
                self.url,
                files={"file": (path.name, content)},
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise ExtractionFailed("Extraction request timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise ExtractionFailed(
                f"Extraction service returned HTTP {exc.response.status_code}: "
                f"{exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ExtractionFailed(f"Extraction request failed: {exc}") from exc

        try:
            text = response.json()["text"]
        except (json.JSONDecodeError, KeyError, TypeError) as exc:
            raise ExtractionFailed(f"Malformed extraction response: {exc}") from exc
        if not isinstance(text, str):
            raise ExtractionFailed("Extraction response 'text' is not a string")

        logger.debug("Extracted %d character(s) from %s", len(text), path.name)
        return text


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


def count_money_tokens(text: str) -> int:
    """Count prices with pence in *text*."""
    return len(MONEY_RE.findall(text))


def is_weak(text: str) -> bool:
    """True if *text* has too few money tokens to be a usable statement."""
    return count_money_tokens(text) < WEAK_TEXT_MONEY_TOKENS


def extract_smart(
    path: Path,
    primary: TextExtractor,
    fallback: TextExtractor | None = None,
) -> str:
    """Extract text with *primary*, retrying with *fallback* when it is weak.

    The fallback's text is used only when it holds more money tokens than
    the primary's.  A fallback failure is logged and the primary text kept.

    Raises:
        ExtractionFailed: If the primary extractor fails.
    """
    text = primary.extract_text(path)
    if fallback is None or not is_weak(text):
        return text

    logger.info("Weak text layer (%d money token(s)); trying fallback", count_money_tokens(text))
    try:
        alternative = fallback.extract_text(path)
    except ExtractionFailed as exc:
        logger.warning("Fallback extraction failed: %s", exc)
        return text

    if count_money_tokens(alternative) > count_money_tokens(text):
        return alternative
    return text


def get_extractor(config: ExtractionConfig) -> TextExtractor:
    """Return the extractor named by ``config.provider``.

    Raises:
        ValueError: If the provider is unknown.
    """
    if config.provider == "plain":
        return PlainTextExtractor()
    if config.provider == "http":
        return HttpTextExtractor(config.url, config.api_key_env, config.timeout)
    raise ValueError(f"Unknown extraction provider: {config.provider!r}")
