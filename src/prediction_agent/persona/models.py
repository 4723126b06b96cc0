"""
Agent profile records.

A profile is the agent's identity: its id (also the wallet key in the
state store), display name, and the identity key that selects its default
strategy. Persona prose is carried through untouched.
"""
from __future__ import annotations

from typing import Any, Dict, Tuple

from pydantic import BaseModel, ConfigDict, Field


class AgentProfile(BaseModel):
    """Immutable agent identity, loaded once before strategies are built."""

    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str = ""
    character: str = "pamela"
    system: str = ""
    bio: Tuple[str, ...] = ()
    topics: Tuple[str, ...] = ()
    adjectives: Tuple[str, ...] = ()
    settings: Dict[str, Any] = Field(default_factory=dict)

    # Which resolver produced this profile ("config", "legacy", "registry", "default")
    source: str = "default"

    @classmethod
    def from_config(cls, data: Dict[str, Any], character: str, source: str) -> "AgentProfile":
        """
        Build a profile from a JSON config object.

        Raises:
            pydantic.ValidationError: If fields have the wrong types
        """
        return cls(
            id=data.get("id") or "",
            name=data.get("name") or "",
            character=(data.get("agent_character") or character).strip().lower(),
            system=data.get("system") or "",
            bio=tuple(data.get("bio") or ()),
            topics=tuple(data.get("topics") or ()),
            adjectives=tuple(data.get("adjectives") or ()),
            settings=data.get("settings") or {},
            source=source,
        )
