"""
Data models and type definitions for the formations data-access layer.

Provides type-safe records for listings, filters, sessions and profiles.
Records are read-only views of rows owned by the remote store.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SortDirection(str, Enum):
    """Ordering direction for listing queries."""

    ASC = "asc"
    DESC = "desc"


# Listing records


class Formation(BaseModel):
    """A row of the formation listing."""

    id: int
    etablissement: Optional[str] = None
    filiere: Optional[str] = None
    ville: Optional[str] = None
    departement: Optional[str] = None
    voie: Optional[str] = None

    # Columns this layer does not know about are kept as-is
    model_config = ConfigDict(extra="allow")


class FormationDetail(Formation):
    """A formation merged with its enrichment outcome."""

    notes: Optional[Any] = None
    locked: bool = True
    error: Optional[str] = None


class FormationPage(BaseModel):
    """One page of listing results plus the unpaginated match count."""

    data: List[Formation] = Field(default_factory=list)
    count: Optional[int] = None
    page: int = 1
    page_size: int = 500


class FormationFilters(BaseModel):
    """Caller-supplied listing filters; empty values are not applied."""

    search: Optional[str] = None
    types: List[str] = Field(default_factory=list, alias="type")
    autre: Optional[str] = None
    departement: Optional[str] = None
    ville: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("types", mode="before")
    @classmethod
    def parse_types(cls, v):
        """Accept a single code, a comma-separated string or a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return [str(t) for t in v if t not in (None, "")]

    @field_validator("search", "autre", "departement", "ville", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v)
        return v or None

    @classmethod
    def from_mapping(cls, filters: Optional[Mapping[str, Any]]) -> "FormationFilters":
        """Build filters from a plain mapping of filter names to values."""
        if isinstance(filters, cls):
            return filters
        return cls.model_validate(dict(filters or {}))


# Auth and profile records


class User(BaseModel):
    """Authenticated backend user."""

    id: str
    email: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class Session(BaseModel):
    """Bearer credential issued by the backend auth service."""

    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_at: Optional[int] = None
    user: Optional[User] = None

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_auth_response(cls, payload: Dict[str, Any]) -> "Session":
        """Build a session from a token grant response."""
        expires_at = payload.get("expires_at")
        if expires_at is None and payload.get("expires_in") is not None:
            now = int(datetime.now(timezone.utc).timestamp())
            expires_at = now + int(payload["expires_in"])
        return cls(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            token_type=payload.get("token_type") or "bearer",
            expires_at=expires_at,
            user=payload.get("user"),
        )

    @property
    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc).timestamp() >= self.expires_at


class UserProfile(BaseModel):
    """Row of the user profile table holding the token balance."""

    user_id: Optional[str] = None
    tokens: Optional[int] = None

    model_config = ConfigDict(extra="ignore")
