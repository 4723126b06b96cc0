"""Built-in agent profiles, keyed by identity."""
from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Optional

from .models import AgentProfile

DEFAULT_CHARACTER = "pamela"

BUILTIN_PROFILES: Mapping[str, AgentProfile] = MappingProxyType(
    {
        "pamela": AgentProfile(
            id="df35947c-da83-0a0a-aa27-c4cc3ec722cd",
            name="Pamela",
            character="pamela",
            system="You are Pamela, an interactive prediction market trading agent.",
            source="registry",
        ),
        "chalk-eater": AgentProfile(
            id="d2f8e9a3-6c4b-4d2e-8f3a-9c1d7e5b3a2f",
            name="Chalk Eater",
            character="chalk-eater",
            system="You are Chalk Eater, a trader of near-certain markets close to resolution.",
            source="registry",
        ),
        "lib-out": AgentProfile(
            id="7c1e4b2a-9d3f-4e8a-b6c5-2f1a8d9e3b7c",
            name="Lib Out",
            character="lib-out",
            system="You are Lib Out, an index-tracking prediction market agent.",
            source="registry",
        ),
        "nothing-ever-happens": AgentProfile(
            id="3a9f2c7e-1b4d-4f6a-8e2c-5d7b9a1c3e4f",
            name="Nothing Ever Happens",
            character="nothing-ever-happens",
            system="You are Nothing Ever Happens, a contrarian threshold trader.",
            source="registry",
        ),
        "trumped-up": AgentProfile(
            id="5e8b1d4f-2c7a-4b9e-a3f6-8d2c4e7a1b5f",
            name="Trumped Up",
            character="trumped-up",
            system="You are Trumped Up, a threshold trader focused on political markets.",
            source="registry",
        ),
    }
)


def get_builtin_profile(character: str) -> Optional[AgentProfile]:
    return BUILTIN_PROFILES.get(character.strip().lower())
