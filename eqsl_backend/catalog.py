"""
Card catalog: creation, listing, callsign search and downloads.

Sits between the HTTP routes and the object store. Card metadata only ever
travels through the context codec.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from card_pipeline.composer import CardLayout, compose_card
from eqsl_backend.cache import CardListCache
from eqsl_backend.storage import (
    CREATED_KEY,
    CardStorageClient,
    ObjectNotFoundError,
    StoredObject,
    thumbnail_url,
)
from qsl_shared.context_codec import (
    ENTRY_KEY,
    decode_context,
    encode_context,
    parse_download_count,
)
from qsl_shared.types import DOWNLOADS_FIELD, Card, build_record, normalize_callsign

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class CardValidationError(ValueError):
    """Raised when an upload is rejected before any processing."""


class CardNotFoundError(LookupError):
    """Raised when no card exists for a public id."""


@dataclass
class CardDownload:
    card: Card
    content: bytes
    filename: str
    # False when the download counter could not be updated.
    counted: bool


def download_filename(callsign: str, date: str) -> str:
    """Builds a filesystem-safe attachment name such as ``F4ABC_2025-01-02.jpg``."""
    name = f"{callsign or 'qsl'}_{date or ''}.jpg"
    return _UNSAFE_FILENAME_CHARS.sub("_", name)


class Catalog:
    def __init__(
        self,
        storage: CardStorageClient,
        cache: CardListCache,
        *,
        folder: str = "TW-eQSL",
        max_results: int = 500,
        max_context_length: int = 2000,
        thumbnail_width: int = 400,
        layout: Optional[CardLayout] = None,
    ):
        self.storage = storage
        self.cache = cache
        self.folder = folder
        self.max_results = max_results
        self.max_context_length = max_context_length
        self.thumbnail_width = thumbnail_width
        self.layout = layout or CardLayout()

    def _to_card(self, stored: StoredObject) -> Card:
        return Card.from_record(
            public_id=stored.public_id,
            url=stored.url,
            thumb=thumbnail_url(stored.url, self.thumbnail_width),
            record=decode_context(stored.metadata),
            created_at=stored.created_at,
        )

    def create_card(
        self, image_bytes: Optional[bytes], fields: Mapping[str, Optional[str]]
    ) -> Card:
        """
        Composes and stores a new card.

        Raises:
            CardValidationError: If the photo is missing or the metadata does
                not fit in the store's metadata slot.
            CompositionError: If the card image cannot be rendered.
            StorageError: If the store rejects the upload.
        """
        if not image_bytes:
            raise CardValidationError("No QSL image uploaded")
        record = build_record(fields)
        entry = encode_context(record)
        if len(entry) > self.max_context_length:
            raise CardValidationError(
                f"Card details too long ({len(entry)} > {self.max_context_length} characters)"
            )

        card_bytes = compose_card(image_bytes, record, self.layout)
        stored = self.storage.upload_image(card_bytes, self.folder, {ENTRY_KEY: entry})
        self.cache.invalidate()
        logger.info("Stored card %s for %s", stored.public_id, record["indicatif"])
        return self._to_card(stored)

    def list_cards(self) -> list[Card]:
        """All cards, newest first."""
        cached = self.cache.get()
        if cached is not None:
            return cached
        generation = self.cache.generation
        objects = self.storage.list_objects(self.folder, self.max_results)
        cards = [self._to_card(obj) for obj in objects]
        cards.sort(key=lambda card: card.created_at, reverse=True)
        self.cache.set(cards, generation=generation)
        return cards

    def search(self, callsign: Optional[str]) -> list[Card]:
        """Cards whose callsign matches exactly, ignoring case and spacing."""
        wanted = normalize_callsign(callsign)
        if not wanted:
            return []
        return [
            card
            for card in self.list_cards()
            if normalize_callsign(card.callsign) == wanted
        ]

    def get_card(self, public_id: str) -> tuple[Card, StoredObject]:
        try:
            stored = self.storage.head(public_id)
        except ObjectNotFoundError as e:
            raise CardNotFoundError(public_id) from e
        return self._to_card(stored), stored

    def record_download(self, stored: StoredObject) -> bool:
        """
        Increments the download counter of a stored card.

        Best effort: concurrent downloads may lose an increment, and a failed
        write is logged and reported as False instead of raised.
        """
        record = decode_context(stored.metadata)
        record[DOWNLOADS_FIELD] = str(
            parse_download_count(record.get(DOWNLOADS_FIELD)) + 1
        )
        # Rebuilt from scratch so a legacy wrapper such as custom.entry cannot
        # shadow the new entry on the next read.
        metadata = {
            ENTRY_KEY: encode_context(record),
            CREATED_KEY: stored.metadata.get(CREATED_KEY) or repr(stored.created_at),
        }
        try:
            self.storage.replace_metadata(stored.public_id, metadata)
        except Exception:
            logger.warning(
                "Could not update download count for %s",
                stored.public_id,
                exc_info=True,
            )
            return False
        finally:
            self.cache.invalidate()
        return True

    def download(self, public_id: str) -> CardDownload:
        card, stored = self.get_card(public_id)
        try:
            content = self.storage.get_bytes(public_id)
        except ObjectNotFoundError as e:
            raise CardNotFoundError(public_id) from e
        counted = self.record_download(stored)
        return CardDownload(
            card=card,
            content=content,
            filename=download_filename(card.callsign, card.date),
            counted=counted,
        )
