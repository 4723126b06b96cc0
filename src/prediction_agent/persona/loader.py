"""
Agent profile resolution.

Sources are tried in order and the first one that yields a profile wins:
    1. Injected config file (CONFIG_PATH, default /app/config.json)
    2. Legacy per-agent file agents/<AGENT_CHARACTER>/agent-config.json
    3. Built-in profile registry
    4. Default profile (pamela)

Each resolver is a pure function of (env, read_text). read_text returns
None for a missing file, so tests never touch the filesystem.
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Callable, Mapping, Optional, Sequence

from pydantic import ValidationError

from .builtin import BUILTIN_PROFILES, DEFAULT_CHARACTER, get_builtin_profile
from .models import AgentProfile

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/app/config.json"

# Five dash-separated segments; accepts RFC 4122 UUIDs and looser test ids
PROFILE_ID_PATTERN = re.compile(r"^[^-]+-[^-]+-[^-]+-[^-]+-[^-]+$")

ReadText = Callable[[str], Optional[str]]
ProfileResolver = Callable[[Mapping[str, str], ReadText], Optional[AgentProfile]]


class ProfileValidationError(ValueError):
    """Raised when a loaded profile is unusable."""

    def __init__(self, profile_id: str, reason: str):
        self.profile_id = profile_id
        self.reason = reason
        super().__init__(f"Invalid agent profile {profile_id!r}: {reason}")


def read_text_file(path: str) -> Optional[str]:
    """Read a UTF-8 file, or None if it does not exist."""
    file_path = Path(path)
    if not file_path.is_file():
        return None
    return file_path.read_text(encoding="utf-8")


def _character(env: Mapping[str, str]) -> str:
    return (env.get("AGENT_CHARACTER") or DEFAULT_CHARACTER).strip().lower()


def _load_json(path: str, read_text: ReadText) -> Optional[dict]:
    try:
        text = read_text(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Failed to read profile config {path}: {e}")
        return None
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning(f"Failed to parse profile config {path}: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Profile config {path} is not a JSON object")
        return None
    return data


def from_injected_config(env: Mapping[str, str], read_text: ReadText) -> Optional[AgentProfile]:
    """
    Profile from the injected config file.

    The file may embed a full profile under "character", or only name a
    built-in identity under "agent_character".
    """
    path = env.get("CONFIG_PATH") or DEFAULT_CONFIG_PATH
    config = _load_json(path, read_text)
    if config is None:
        return None

    if isinstance(config.get("character"), dict):
        try:
            profile = AgentProfile.from_config(
                config["character"],
                character=config.get("agent_character") or _character(env),
                source="config",
            )
        except ValidationError as e:
            logger.warning(f"Malformed character in {path}: {e}")
            return None
        logger.info(f"Loaded profile from injected config: {path}")
        return profile

    named = config.get("agent_character")
    if named:
        profile = get_builtin_profile(str(named))
        if profile is not None:
            logger.info(f"Loaded profile '{named}' from registry (via injected config)")
            return profile
    return None


def from_legacy_config(env: Mapping[str, str], read_text: ReadText) -> Optional[AgentProfile]:
    """Profile from agents/<name>/agent-config.json."""
    character = _character(env)
    path = os.path.join("agents", character, "agent-config.json")
    config = _load_json(path, read_text)
    if config is None:
        return None
    try:
        profile = AgentProfile.from_config(config, character=character, source="legacy")
    except ValidationError as e:
        logger.warning(f"Malformed legacy config {path}: {e}")
        return None
    logger.info(f"Loaded profile from legacy config: {path}")
    return profile


def from_registry(env: Mapping[str, str], read_text: ReadText) -> Optional[AgentProfile]:
    character = _character(env)
    profile = get_builtin_profile(character)
    if profile is not None:
        logger.info(f"Loaded profile '{character}' from registry")
    return profile


def default_profile(env: Mapping[str, str], read_text: ReadText) -> Optional[AgentProfile]:
    logger.warning(
        f"No profile found for '{_character(env)}', using default ({DEFAULT_CHARACTER})"
    )
    return BUILTIN_PROFILES[DEFAULT_CHARACTER].model_copy(update={"source": "default"})


PROFILE_RESOLVERS: Sequence[ProfileResolver] = (
    from_injected_config,
    from_legacy_config,
    from_registry,
    default_profile,
)


def load_profile(
    env: Optional[Mapping[str, str]] = None,
    read_text: ReadText = read_text_file,
    resolvers: Sequence[ProfileResolver] = PROFILE_RESOLVERS,
) -> AgentProfile:
    """Return the first profile any resolver produces."""
    source = os.environ if env is None else env
    for resolver in resolvers:
        profile = resolver(source, read_text)
        if profile is not None:
            return profile
    raise ProfileValidationError("", "no profile source produced a profile")


def validate_profile(profile: AgentProfile, env: Optional[Mapping[str, str]] = None) -> None:
    """
    Check a profile before it is used.

    A mismatch between the profile id and AGENT_ID is logged, not raised;
    the loaded id is used.

    Raises:
        ProfileValidationError: Missing id, name or system prompt, or a
            malformed id
    """
    source = os.environ if env is None else env

    if not profile.id:
        raise ProfileValidationError(profile.id, "profile must have an id")
    if not profile.name:
        raise ProfileValidationError(profile.id, "profile must have a name")
    if not profile.system:
        raise ProfileValidationError(profile.id, "profile must have a system prompt")
    if not PROFILE_ID_PATTERN.match(profile.id):
        raise ProfileValidationError(
            profile.id, "id must be 5 dash-separated segments (e.g. abc-123-def-456-789)"
        )

    expected = source.get("AGENT_ID")
    if expected and expected != profile.id:
        logger.warning(
            f"Profile id mismatch: AGENT_ID={expected} but loaded profile id={profile.id}. "
            f"Using the loaded id."
        )

    logger.info(f"Profile loaded: {profile.name} (id={profile.id}, source={profile.source})")
