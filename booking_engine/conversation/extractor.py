"""
Field extractor: NLU collaborator + deterministic fallback + sticky merge.

Usage:
    extractor = FieldExtractor(KeywordFieldExtractor())
    draft = await extractor.extract("haircut tomorrow at 2pm", Draft())
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from booking_engine.config import settings
from booking_engine.conversation.fallback import FallbackResult, extract_fallback
from booking_engine.schemas.booking_schema import DRAFT_FIELDS, Draft, ExtractedFields
from booking_engine.tools.nlu import ContextHints, FieldExtractorClient
from booking_engine.tools.services import DEFAULT_CATALOG, ServiceCatalog
from booking_engine.utils import parse_iso_date, shop_now

logger = logging.getLogger(__name__)


def _merge_date(
    nlu: ExtractedFields, fallback: FallbackResult, previous: Optional[str]
) -> Optional[str]:
    explicit = nlu.date or fallback.explicit_date
    relative = fallback.relative_date
    if relative is None:
        return explicit or previous
    explicit_day = parse_iso_date(explicit)
    if explicit_day is None or explicit_day.weekday() != fallback.implied_weekday:
        return relative.isoformat()
    return explicit


def _merge_confirmed(
    nlu: ExtractedFields, fallback: FallbackResult, previous: Optional[bool]
) -> Optional[bool]:
    if fallback.fields.confirmed is not None:
        return fallback.fields.confirmed
    if nlu.confirmed is not None:
        return nlu.confirmed
    return previous


def merge_fields(nlu: ExtractedFields, fallback: FallbackResult, previous: Draft) -> Draft:
    """Combine one turn's two extraction stages with the prior Draft.

    Per field the collaborator's value wins, then the fallback's, then the
    previous Draft's, so a turn can add or correct but never blank a field.
    """
    merged: dict[str, object] = {}
    for name in DRAFT_FIELDS:
        if name == "date":
            continue
        merged[name] = getattr(nlu, name) or getattr(fallback.fields, name) or getattr(previous, name)
    merged["date"] = _merge_date(nlu, fallback, previous.date)
    merged["confirmed"] = _merge_confirmed(nlu, fallback, previous.confirmed)
    return Draft(**merged)


class FieldExtractor:
    """Turns one free-text turn plus the prior Draft into the updated Draft."""

    def __init__(
        self,
        client: FieldExtractorClient,
        catalog: ServiceCatalog = DEFAULT_CATALOG,
        clock: Callable[[], datetime] = shop_now,
        timeout_sec: float = settings.model.nlu_timeout_sec,
    ) -> None:
        self._client = client
        self._catalog = catalog
        self._clock = clock
        self._timeout_sec = timeout_sec

    async def _call_collaborator(
        self, text: str, previous: Draft, hints: ContextHints
    ) -> ExtractedFields:
        try:
            return await asyncio.wait_for(
                self._client.extract_fields(text, previous, hints),
                timeout=self._timeout_sec,
            )
        except asyncio.TimeoutError:
            logger.warning("NLU collaborator timed out after %.1fs, using fallback", self._timeout_sec)
            return ExtractedFields()
        except Exception:
            logger.exception("NLU collaborator raised, using fallback")
            return ExtractedFields()

    def _canonicalize(self, fields: ExtractedFields) -> ExtractedFields:
        if not fields.service_name:
            return fields
        canonical = self._catalog.canonical_name(fields.service_name)
        if canonical and canonical != fields.service_name:
            return fields.model_copy(update={"service_name": canonical})
        return fields

    async def extract(self, turn_text: str, previous: Draft) -> Draft:
        now = self._clock()
        hints = ContextHints(today=now.date(), now=now, known_services=self._catalog.names())
        nlu = self._canonicalize(await self._call_collaborator(turn_text, previous, hints))
        fallback = extract_fallback(turn_text, hints.today)
        draft = merge_fields(nlu, fallback, previous)
        logger.debug(
            "Extracted fields: nlu=%s fallback=%s",
            sorted(nlu.model_dump(exclude_none=True)),
            sorted(fallback.fields.model_dump(exclude_none=True)),
        )
        return draft
