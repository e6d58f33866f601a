"""
Tests for the AnkiConnect client.
"""

import httpx
import pytest

from obsicard.cards.schema import Card
from obsicard.errors import StoreCallError, TransientServiceError
from obsicard.sync.anki_client import AnkiConnectClient


ANKI_URL = "http://anki.test:8765"


def _client_returning(response):
    return AnkiConnectClient(ANKI_URL, transport=httpx.MockTransport(lambda request: response))


@pytest.mark.asyncio
async def test_invoke_payload(fake_anki, anki_client):
    async with anki_client:
        result = await anki_client.invoke("createDeck", deck="Biology")

    assert result == 1700000000000
    assert fake_anki.requests == [{"action": "createDeck", "version": 6, "params": {"deck": "Biology"}}]


@pytest.mark.asyncio
async def test_store_error_raises_store_call_error():
    client = _client_returning(httpx.Response(200, json={"result": None, "error": "model was not found"}))

    with pytest.raises(StoreCallError) as exc_info:
        await client.invoke("addNote", note={})

    assert exc_info.value.action == "addNote"
    assert exc_info.value.code == "STORE_CALL_FAILED"
    assert exc_info.value.retryable is True
    assert "model was not found" in str(exc_info.value)
    await client.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="Internal Server Error"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"unexpected": True}),
    ],
)
async def test_bad_responses_are_transient(response):
    client = _client_returning(response)

    with pytest.raises(TransientServiceError) as exc_info:
        await client.invoke("version")

    assert not isinstance(exc_info.value, StoreCallError)
    await client.aclose()


@pytest.mark.asyncio
async def test_unreachable_is_transient(fake_anki, anki_client):
    fake_anki.available = False

    with pytest.raises(TransientServiceError, match="Connection refused"):
        await anki_client.version()
    assert await anki_client.is_available() is False


@pytest.mark.asyncio
async def test_is_available(anki_client):
    assert await anki_client.is_available() is True
    assert await anki_client.version() == 6


@pytest.mark.asyncio
async def test_ensure_deck_creates_only_missing(fake_anki, anki_client):
    assert await anki_client.ensure_deck("Default") is False
    assert await anki_client.ensure_deck("Biology") is True

    assert "Biology" in fake_anki.decks
    assert fake_anki.actions() == ["deckNames", "deckNames", "createDeck"]
    assert await anki_client.deck_names() == ["Biology", "Default"]


@pytest.mark.asyncio
async def test_add_note(fake_anki, anki_client):
    card = Card(front="Q?", back="A.", tags=["bio"], source="Note")

    note_id = await anki_client.add_note(card, "Biology")

    assert note_id == 1
    assert fake_anki.notes == [{
        "deckName": "Biology",
        "modelName": "Basic",
        "fields": {"Front": "Q?", "Back": "A."},
        "tags": ["bio"],
        "options": {"allowDuplicate": False, "duplicateScope": "deck"},
    }]


@pytest.mark.asyncio
async def test_connection_success(anki_client):
    result = await anki_client.test_connection()
    assert result == {"success": True, "message": "Successfully connected to AnkiConnect", "version": 6}


@pytest.mark.asyncio
async def test_connection_failures(fake_anki, anki_client):
    fake_anki.available = False
    result = await anki_client.test_connection()
    assert result["success"] is False
    assert result["message"].startswith("Failed to connect: ")

    client = _client_returning(httpx.Response(200, json={"result": None, "error": "locked"}))
    result = await client.test_connection()
    assert result["success"] is False
    assert result["message"].startswith("AnkiConnect error: ")
    await client.aclose()

