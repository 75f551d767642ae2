"""
NLU collaborators: turn free text into a typed partial Draft.

OpenAIFieldExtractor asks an LLM for a JSON object. KeywordFieldExtractor is
the offline stand-in used when no API key is configured. Neither raises on
malformed or failed model output; an empty ExtractedFields is a valid answer.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Protocol

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from booking_engine.config import settings
from booking_engine.prompts.prompt_templates import build_extraction_prompt
from booking_engine.prompts.system_prompts import EXTRACTION_SYSTEM_PROMPT
from booking_engine.schemas.booking_schema import Draft, ExtractedFields
from booking_engine.tools.services import DEFAULT_CATALOG, ServiceCatalog, match_service

logger = logging.getLogger(__name__)

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")
_NAME_PATTERN = re.compile(
    r"\b(?:my name is|name's|this is)\s+([a-z][a-z'\-]+(?:\s+[a-z][a-z'\-]+){0,3})",
    re.IGNORECASE,
)
# Words that follow "this is" without being a name.
_NOT_A_NAME = frozenset({
    "for", "about", "regarding", "it", "me", "my", "urgent", "possible", "ok", "okay",
    "great", "perfect", "fine", "good", "not", "just", "a", "an", "the",
})
# A name ends at the first of these.
_NAME_BREAK = frozenset({
    "and", "my", "phone", "number", "is", "i", "i'm", "for", "at", "on", "today",
    "tomorrow", "please", "can", "could", "would", "want", "need", "here",
})


@dataclass(frozen=True)
class ContextHints:
    """Shop context the collaborator needs to resolve relative phrases."""

    today: date
    now: datetime
    known_services: list[str] = field(default_factory=list)


class FieldExtractorClient(Protocol):
    """Contract every NLU collaborator satisfies."""

    async def extract_fields(
        self, message_text: str, prior_draft: Draft, hints: ContextHints
    ) -> ExtractedFields: ...


def parse_extraction_response(text: str) -> ExtractedFields:
    """Parse the first JSON object in a model reply, degrading to empty."""
    match = _JSON_BLOCK.search(text or "")
    if not match:
        logger.warning("NLU reply contained no JSON object")
        return ExtractedFields()
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("NLU reply was not valid JSON: %r", text[:200])
        return ExtractedFields()
    if not isinstance(payload, dict):
        logger.warning("NLU reply JSON was not an object")
        return ExtractedFields()
    try:
        return ExtractedFields.model_validate(payload)
    except ValidationError as exc:
        # Keep the keys that did validate; a partial result is still useful.
        rejected = {str(error["loc"][0]) for error in exc.errors() if error["loc"]}
        logger.warning("NLU reply failed validation for %s: %s", sorted(rejected), exc.errors())
        kept = {key: value for key, value in payload.items() if key not in rejected}
        try:
            return ExtractedFields.model_validate(kept)
        except ValidationError:
            return ExtractedFields()


class OpenAIFieldExtractor:
    """LLM-backed extraction via the OpenAI chat completions API."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = settings.model.llm_model,
        temperature: float = settings.model.llm_temperature,
        timezone_name: str = settings.business.timezone,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=settings.model.openai_api_key)
        self._model = model
        self._temperature = temperature
        self._timezone_name = timezone_name

    async def extract_fields(
        self, message_text: str, prior_draft: Draft, hints: ContextHints
    ) -> ExtractedFields:
        prompt = build_extraction_prompt(
            message_text,
            prior_draft,
            today=hints.today,
            now=hints.now,
            known_services=hints.known_services,
            timezone_name=self._timezone_name,
        )
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                messages=[
                    {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
            )
        except OpenAIError as exc:
            logger.warning("NLU request failed, using fallback only: %s", exc)
            return ExtractedFields()

        content = response.choices[0].message.content if response.choices else None
        return parse_extraction_response(content or "")


class KeywordFieldExtractor:
    """Offline collaborator: catalog keyword matching and self-introductions."""

    def __init__(self, catalog: ServiceCatalog = DEFAULT_CATALOG) -> None:
        self._catalog = catalog

    async def extract_fields(
        self, message_text: str, prior_draft: Draft, hints: ContextHints
    ) -> ExtractedFields:
        service = match_service(message_text, self._catalog)
        name = None
        match = _NAME_PATTERN.search(message_text)
        if match:
            words = []
            for word in match.group(1).split():
                if word.lower() in _NAME_BREAK:
                    break
                words.append(word)
            if words and words[0].lower() not in _NOT_A_NAME:
                name = " ".join(word.capitalize() for word in words)
        return ExtractedFields(service_name=service, customer_name=name)


class NullFieldExtractor:
    """Collaborator that never recognizes anything."""

    async def extract_fields(
        self, message_text: str, prior_draft: Draft, hints: ContextHints
    ) -> ExtractedFields:
        return ExtractedFields()


def build_default_extractor_client() -> FieldExtractorClient:
    """OpenAI when an API key is configured, otherwise keyword matching."""
    if settings.model.openai_api_key:
        return OpenAIFieldExtractor()
    logger.info("OPENAI_API_KEY not set, using keyword field extraction")
    return KeywordFieldExtractor()
