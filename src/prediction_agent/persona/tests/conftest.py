"""Persona test fixtures. Files are served from a dict, never from disk."""
import json

import pytest


@pytest.fixture
def files():
    """Factory for a read_text function over an in-memory file map."""

    def _build(mapping):
        contents = {
            path: value if isinstance(value, str) else json.dumps(value)
            for path, value in mapping.items()
        }
        return contents.get

    return _build


@pytest.fixture
def character_config():
    return {
        "id": "11111111-2222-3333-4444-555555555555",
        "name": "Custom Agent",
        "system": "You are a custom agent.",
        "bio": ["Trades things"],
    }
