"""
Shared fixtures: an in-memory AnkiConnect server behind httpx.MockTransport.
"""

import json

import httpx
import pytest

from obsicard.sync.anki_client import AnkiConnectClient

ANKI_URL = "http://anki.test:8765"


class FakeAnki:
    """Minimal AnkiConnect: version, deckNames, createDeck, addNote."""

    def __init__(self):
        self.available = True
        self.decks = {"Default"}
        self.notes = []
        self.requests = []
        # Fronts for which addNote reports an error
        self.reject_fronts = set()
        self.reject_all = False

    def _ok(self, result):
        return httpx.Response(200, json={"result": result, "error": None})

    def _error(self, message):
        return httpx.Response(200, json={"result": None, "error": message})

    def handler(self, request: httpx.Request) -> httpx.Response:
        if not self.available:
            raise httpx.ConnectError("Connection refused", request=request)

        payload = json.loads(request.content)
        self.requests.append(payload)
        action, params = payload["action"], payload["params"]

        if action == "version":
            return self._ok(6)
        if action == "deckNames":
            return self._ok(sorted(self.decks))
        if action == "createDeck":
            self.decks.add(params["deck"])
            return self._ok(1700000000000)
        if action == "addNote":
            note = params["note"]
            if self.reject_all or note["fields"]["Front"] in self.reject_fronts:
                return self._error("cannot create note because it is a duplicate")
            self.notes.append(note)
            return self._ok(len(self.notes))
        return self._error("unsupported action")

    def actions(self):
        return [r["action"] for r in self.requests]


@pytest.fixture
def fake_anki():
    return FakeAnki()


@pytest.fixture
def anki_client(fake_anki):
    return AnkiConnectClient(ANKI_URL, transport=httpx.MockTransport(fake_anki.handler))
