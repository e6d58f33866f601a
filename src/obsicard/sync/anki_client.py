"""
AnkiConnect client.

Thin async wrapper around the AnkiConnect add-on's JSON-RPC endpoint:

    POST <url>  {"action": ..., "version": 6, "params": {...}}
    ->          {"result": ..., "error": null | "message"}

Transport failures raise TransientServiceError; a non-null ``error`` in the
response raises StoreCallError.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..cards.schema import Card
from ..errors import StoreCallError, TransientServiceError

logger = logging.getLogger(__name__)

ANKI_CONNECT_VERSION = 6
DEFAULT_TIMEOUT = 30.0
DEFAULT_NOTE_MODEL = "Basic"


class AnkiConnectClient:
    """Async AnkiConnect client with a lazily created connection pool."""

    def __init__(
        self,
        url: str,
        version: int = ANKI_CONNECT_VERSION,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.api_version = version
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def invoke(self, action: str, **params: Any) -> Any:
        """
        Call an AnkiConnect action.

        Args:
            action: AnkiConnect action name (e.g., "deckNames")
            **params: Action parameters

        Returns:
            The ``result`` field of the response

        Raises:
            TransientServiceError: If AnkiConnect cannot be reached or answers
                with a non-2xx status or a malformed body
            StoreCallError: If AnkiConnect reports an error for the action
        """
        payload = {"action": action, "version": self.api_version, "params": params}

        try:
            response = await self._get_client().post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise TransientServiceError(f"AnkiConnect request failed: {e}") from e

        if response.status_code >= 400:
            raise TransientServiceError(
                f"AnkiConnect request failed: HTTP {response.status_code} {response.reason_phrase}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransientServiceError("AnkiConnect returned a non-JSON body") from e

        if not isinstance(data, dict) or "result" not in data or "error" not in data:
            raise TransientServiceError(f"Unexpected AnkiConnect response for {action}: {data!r}")

        if data["error"] is not None:
            raise StoreCallError(f"AnkiConnect {action} failed: {data['error']}", action=action)

        return data["result"]

    async def version(self) -> int:
        return await self.invoke("version")

    async def is_available(self) -> bool:
        """Reachability probe; never raises."""
        try:
            await self.version()
        except TransientServiceError as e:
            logger.debug(f"AnkiConnect unavailable at {self.url}: {e}")
            return False
        return True

    async def deck_names(self) -> List[str]:
        return list(await self.invoke("deckNames") or [])

    async def create_deck(self, deck_name: str) -> Any:
        return await self.invoke("createDeck", deck=deck_name)

    async def ensure_deck(self, deck_name: str) -> bool:
        """
        Create ``deck_name`` if it does not exist yet.

        Returns:
            True if the deck was created by this call
        """
        if deck_name in await self.deck_names():
            return False
        await self.create_deck(deck_name)
        logger.info(f"Created Anki deck: {deck_name}")
        return True

    async def add_note(
        self,
        card: Card,
        deck_name: str,
        model_name: str = DEFAULT_NOTE_MODEL,
    ) -> Optional[int]:
        """
        Add a card as a note; duplicates within the deck are rejected by Anki.

        Returns:
            Note ID assigned by Anki
        """
        note = {
            "deckName": deck_name,
            "modelName": model_name,
            "fields": {"Front": card.front, "Back": card.back},
            "tags": list(card.tags),
            "options": {"allowDuplicate": False, "duplicateScope": "deck"},
        }
        return await self.invoke("addNote", note=note)

    async def test_connection(self) -> Dict[str, Any]:
        """
        Test connection to AnkiConnect.

        Returns:
            Dict with success flag, message and, on success, the API version
        """
        try:
            version = await self.version()
        except StoreCallError as e:
            return {"success": False, "message": f"AnkiConnect error: {e}"}
        except TransientServiceError as e:
            return {"success": False, "message": f"Failed to connect: {e}"}

        return {
            "success": True,
            "message": "Successfully connected to AnkiConnect",
            "version": version,
        }

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "AnkiConnectClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"AnkiConnectClient(url={self.url}, version={self.api_version})"
