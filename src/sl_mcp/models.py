"""Data models for SL sites, departures and match results."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Site(BaseModel):
    """A named SL stop or station with a stable numeric id."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    site_id: int = Field(alias="siteId", gt=0)
    name: str = Field(min_length=1)


class Departure(BaseModel):
    """One upcoming departure, normalized from a raw SL record."""

    model_config = ConfigDict(frozen=True)

    time: str  # HH:MM, Europe/Stockholm
    mode: str = ""
    line: str = ""
    destination: str = ""
    platform: str = ""
    timing: Literal["realtime", "scheduled"] = "scheduled"


class CacheEntry(BaseModel):
    """A cached value with an absolute expiry (epoch seconds)."""

    model_config = ConfigDict(frozen=True)

    value: Any
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


class ModeFilter(BaseModel):
    """Canonical transport modes to keep, plus caller tokens we could not use."""

    model_config = ConfigDict(frozen=True)

    modes: frozenset[str] = frozenset()
    ignored: list[str] = Field(default_factory=list)

    def allows(self, canonical_mode: str) -> bool:
        """Return True if the mode passes (an empty filter allows everything)."""
        return not self.modes or canonical_mode in self.modes


class SiteResolved(BaseModel):
    """The query resolved to a single site."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["resolved"] = "resolved"
    site: Site


class SiteAmbiguous(BaseModel):
    """Several sites tie for the best prefix or exact match."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ambiguous"] = "ambiguous"
    candidates: tuple[Site, ...]


class SiteNotFound(BaseModel):
    """No site name contains the query."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["not_found"] = "not_found"


SiteMatch = SiteResolved | SiteAmbiguous | SiteNotFound
