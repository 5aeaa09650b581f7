"""
Pydantic models for project configuration.

Everything in .envref.yaml lands here: the project name that namespaces
its secrets, the env file layout, the ordered backend list, profiles and
the team roster used as sync recipients.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class BackendType(str, Enum):
    """Closed set of secret store types a backend entry may name."""

    KEYCHAIN = "keychain"
    VAULT = "vault"
    PLUGIN = "plugin"

    @classmethod
    def values(cls) -> list[str]:
        return [member.value for member in cls]


class BackendConfig(BaseModel):
    """One configured secret backend.

    ``type`` may be omitted when ``name`` is itself a backend type, so
    ``- name: keychain`` is enough for the common case.
    """

    name: str
    type: Optional[str] = None
    config: dict[str, str] = Field(default_factory=dict)

    @field_validator("config", mode="before")
    @classmethod
    def _stringify(cls, value):
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value

    @property
    def effective_type(self) -> str:
        return self.type or self.name


class ProfileConfig(BaseModel):
    """A named deployment environment with its own overlay file."""

    env_file: Optional[str] = None


class TeamMember(BaseModel):
    """A teammate entitled to decrypt sync envelopes.

    ``public_key`` holds an ASCII-armored PGP public key block.
    """

    name: str
    public_key: str


class ProjectConfig(BaseModel):
    """Complete project configuration (.envref.yaml)."""

    project: str = ""
    env_file: str = ".env"
    local_file: str = ".env.local"
    active_profile: Optional[str] = None
    backends: list[BackendConfig] = Field(default_factory=list)
    profiles: dict[str, ProfileConfig] = Field(default_factory=dict)
    team: list[TeamMember] = Field(default_factory=list)

    def profile_env_file(self, profile: str) -> str:
        """Env file for *profile*: the declared one, else ``.env.<profile>``."""
        declared = self.profiles.get(profile)
        if declared and declared.env_file:
            return declared.env_file
        return f".env.{profile}"

    def effective_profile(self, override: Optional[str] = None) -> Optional[str]:
        return override or self.active_profile or None

    def team_public_keys(self) -> list[str]:
        return [member.public_key for member in self.team]

    def team_member(self, name: str) -> Optional[TeamMember]:
        for member in self.team:
            if member.name == name:
                return member
        return None
