"""
Delivery queue for approved flashcards.

Cards are pushed to Anki immediately when AnkiConnect is reachable. When it
is not (or the push fails) the card is queued, persisted, and replayed later
by ``process_queue``, either on demand or from a periodic background task.

Each failed replay increments the item's retry counter; once the counter
reaches ``max_retries`` the item is dropped and recorded in ``dropped``.
Delivery is at-least-once at best: a queued card is durable, not delivered.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from ..cards.schema import Card
from ..errors import RetryExhaustedError, TransientServiceError
from ..settings import Settings
from .anki_client import AnkiConnectClient
from .storage import JsonFileStore, KeyValueStore

logger = logging.getLogger(__name__)

QUEUE_KEY = "obsicard-sync-queue"

# Pause between consecutive pushes so Anki's UI thread keeps up
DEFAULT_ITEM_DELAY = 0.1
DEFAULT_AUTO_INTERVAL = 60.0


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    QUEUED = "queued"
    FAILED = "failed"


@dataclass
class QueuedItem:
    """A card waiting for delivery."""
    card: Card
    timestamp: float = field(default_factory=time.time)
    retry_count: int = 0
    deck_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "card": self.card.to_dict(),
            "timestamp": self.timestamp,
            "retry_count": self.retry_count,
            "deck_name": self.deck_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueuedItem":
        return cls(
            card=Card.from_dict(data["card"]),
            timestamp=float(data.get("timestamp") or 0.0),
            retry_count=int(data.get("retry_count") or 0),
            deck_name=data.get("deck_name"),
        )


@dataclass
class DeliveryReport:
    """Counts from delivering a batch of cards."""
    delivered: int = 0
    queued: int = 0
    failed: int = 0

    def record(self, status: DeliveryStatus) -> None:
        if status == DeliveryStatus.DELIVERED:
            self.delivered += 1
        elif status == DeliveryStatus.QUEUED:
            self.queued += 1
        else:
            self.failed += 1

    @property
    def total(self) -> int:
        return self.delivered + self.queued + self.failed

    def summary(self) -> str:
        return f"{self.delivered} delivered, {self.queued} queued, {self.failed} failed"


@dataclass
class QueueStatus:
    count: int
    items: List[QueuedItem] = field(default_factory=list)


class SyncQueueManager:
    """
    Owns the offline queue and all deliveries to Anki.

    The queue is rehydrated from ``store`` once at construction and written
    back after every mutation.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[AnkiConnectClient] = None,
        store: Optional[KeyValueStore] = None,
        item_delay: float = DEFAULT_ITEM_DELAY,
    ):
        """
        Args:
            settings: Pipeline settings
            client: AnkiConnect client (built from settings if None)
            store: Queue persistence (JSON file at settings.queue_path if None)
            item_delay: Seconds to wait between consecutive pushes
        """
        self.settings = settings
        self._owns_client = client is None
        self.client = client or AnkiConnectClient(settings.anki_connect_url)
        self.store = store if store is not None else JsonFileStore(settings.queue_path)
        self.item_delay = item_delay

        self._queue: List[QueuedItem] = []
        # Snapshot being replayed by process_queue; persisted with the queue
        self._in_flight: List[QueuedItem] = []
        self._processing = False
        # Bumped by clear_queue so a running replay drops its current item
        self._generation = 0
        self._auto_task: Optional[asyncio.Task] = None

        self.dropped: List[RetryExhaustedError] = []

        self._load()

    # ========================================================================
    # Persistence
    # ========================================================================

    def _load(self) -> None:
        raw = self.store.get(QUEUE_KEY)
        if not raw:
            return

        try:
            entries = json.loads(raw)
            if not isinstance(entries, list):
                raise ValueError(f"expected a list, got {type(entries).__name__}")
        except ValueError as e:
            logger.error(f"Failed to load sync queue, starting empty: {e}")
            self._queue = []
            return

        for entry in entries:
            try:
                self._queue.append(QueuedItem.from_dict(entry))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed queue entry: {e}")

        if self._queue:
            logger.info(f"Loaded {len(self._queue)} queued card(s)")

    def _pending(self) -> List[QueuedItem]:
        return self._in_flight + self._queue

    def _save(self) -> None:
        blob = json.dumps([item.to_dict() for item in self._pending()], ensure_ascii=False)
        try:
            self.store.set(QUEUE_KEY, blob)
        except OSError as e:
            logger.error(f"Failed to save sync queue: {e}")

    def _enqueue(self, card: Card, deck_name: Optional[str]) -> None:
        self._queue.append(QueuedItem(card=card, deck_name=deck_name))
        self._save()

    # ========================================================================
    # Delivery
    # ========================================================================

    def reconfigure(self, settings: Settings) -> None:
        """Swap settings; an owned client follows the new AnkiConnect URL."""
        self.settings = settings
        if self._owns_client:
            self.client.url = settings.anki_connect_url

    async def _push(self, card: Card, deck_name: Optional[str]) -> None:
        deck = deck_name or self.settings.anki_deck_name
        await self.client.ensure_deck(deck)
        await self.client.add_note(card, deck)

    def _fallback(self, card: Card, deck_name: Optional[str], reason: str) -> DeliveryStatus:
        if self.settings.enable_offline_queue:
            self._enqueue(card, deck_name)
            logger.warning(f"Queued card for later sync ({reason})")
            return DeliveryStatus.QUEUED

        logger.error(f"Failed to sync card ({reason})")
        return DeliveryStatus.FAILED

    async def deliver(self, card: Card, deck_name: Optional[str] = None) -> DeliveryStatus:
        """
        Deliver one card now, or queue it if that is not possible.

        Args:
            card: Card to deliver
            deck_name: Target deck (settings.anki_deck_name if None)

        Returns:
            DELIVERED, QUEUED (offline queue enabled) or FAILED
        """
        if not await self.client.is_available():
            return self._fallback(card, deck_name, "AnkiConnect is not available")

        try:
            await self._push(card, deck_name)
        except TransientServiceError as e:
            return self._fallback(card, deck_name, str(e))

        return DeliveryStatus.DELIVERED

    async def deliver_many(
        self,
        cards: Iterable[Card],
        deck_name: Optional[str] = None,
    ) -> DeliveryReport:
        """Deliver cards one at a time, pacing pushes by ``item_delay``."""
        report = DeliveryReport()
        cards = list(cards)

        for i, card in enumerate(cards):
            report.record(await self.deliver(card, deck_name))
            if i < len(cards) - 1 and self.item_delay > 0:
                await asyncio.sleep(self.item_delay)

        logger.info(f"Sync complete: {report.summary()}")
        return report

    async def process_queue(self) -> int:
        """
        Replay queued cards.

        Returns:
            Number of cards delivered; 0 if already running, the queue is
            empty, or AnkiConnect is unreachable
        """
        if self._processing or not self._queue:
            return 0

        # Set before the first await so a concurrent call sees it
        self._processing = True
        delivered = 0

        try:
            if not await self.client.is_available():
                logger.warning("AnkiConnect is not available. Queue processing skipped.")
                return 0

            self._in_flight = self._queue
            self._queue = []
            logger.info(f"Processing {len(self._in_flight)} queued card(s)")

            while self._in_flight:
                # The item stays at the head until its push settles
                item = self._in_flight[0]
                generation = self._generation
                failure: Optional[TransientServiceError] = None
                try:
                    await self._push(item.card, item.deck_name)
                    delivered += 1
                except TransientServiceError as e:
                    failure = e

                if generation != self._generation:
                    logger.info("Queue was cleared during processing")
                    break

                self._in_flight.pop(0)
                if failure is not None:
                    item.retry_count += 1
                    if item.retry_count < self.settings.max_retries:
                        self._queue.append(item)
                        logger.warning(
                            f"Queued card failed (attempt {item.retry_count}/"
                            f"{self.settings.max_retries}): {failure}"
                        )
                    else:
                        error = RetryExhaustedError(
                            f"Dropping queued card after {item.retry_count} failed attempt(s): "
                            f"{item.card.front[:50]!r}",
                            retry_count=item.retry_count,
                            details=str(failure),
                        )
                        self.dropped.append(error)
                        logger.error(str(error))

                self._save()

                if self._in_flight and self.item_delay > 0:
                    await asyncio.sleep(self.item_delay)
        finally:
            # Items not replayed (e.g. on cancellation) go back to the head
            if self._in_flight:
                self._queue = self._in_flight + self._queue
                self._in_flight = []
            self._save()
            self._processing = False

        if delivered:
            logger.info(f"Synced {delivered} queued flashcard(s) to Anki")
        return delivered

    # ========================================================================
    # Queue inspection and housekeeping
    # ========================================================================

    def queue_status(self) -> QueueStatus:
        pending = self._pending()
        return QueueStatus(count=len(pending), items=list(pending))

    def clear_queue(self) -> None:
        cleared = len(self._pending())
        self._queue = []
        self._in_flight = []
        self._generation += 1
        self._save()
        logger.info(f"Cleared {cleared} queued card(s)")

    def start_auto_processing(self, interval: float = DEFAULT_AUTO_INTERVAL) -> asyncio.Task:
        """
        Replay the queue every ``interval`` seconds on the running loop.

        Returns:
            The background task (the existing one if already started)
        """
        if self._auto_task is not None and not self._auto_task.done():
            return self._auto_task

        self._auto_task = asyncio.get_running_loop().create_task(self._auto_process(interval))
        logger.info(f"Automatic queue processing every {interval:g}s")
        return self._auto_task

    async def stop_auto_processing(self) -> None:
        task, self._auto_task = self._auto_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _auto_process(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.process_queue()
            except Exception as e:
                # Keep the loop alive; the next tick retries
                logger.error(f"Automatic queue processing failed: {e}", exc_info=True)

    # ========================================================================
    # Passthroughs
    # ========================================================================

    async def test_connection(self) -> Dict[str, Any]:
        return await self.client.test_connection()

    async def deck_names(self) -> List[str]:
        return await self.client.deck_names()

    async def aclose(self) -> None:
        await self.stop_auto_processing()
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "SyncQueueManager":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
