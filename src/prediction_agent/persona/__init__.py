"""
Persona Layer - Agent identity.

    - AgentProfile: Immutable identity record (id, name, identity key)
    - load_profile: Ordered resolvers (injected config -> legacy file ->
      built-in registry -> default), first success wins
    - validate_profile / ProfileValidationError: Startup checks
"""
from .builtin import BUILTIN_PROFILES, DEFAULT_CHARACTER, get_builtin_profile
from .loader import (
    PROFILE_RESOLVERS,
    ProfileValidationError,
    default_profile,
    from_injected_config,
    from_legacy_config,
    from_registry,
    load_profile,
    read_text_file,
    validate_profile,
)
from .models import AgentProfile

__all__ = [
    "AgentProfile",
    "BUILTIN_PROFILES",
    "DEFAULT_CHARACTER",
    "get_builtin_profile",
    "PROFILE_RESOLVERS",
    "ProfileValidationError",
    "from_injected_config",
    "from_legacy_config",
    "from_registry",
    "default_profile",
    "load_profile",
    "read_text_file",
    "validate_profile",
]
