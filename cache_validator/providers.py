"""Registry of known CDN/edge cache providers."""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Mapping

from .config import ValidatorConfig
from .types import ProviderProfile


class ProviderRegistry:
    """Immutable, ordered table of provider profiles.

    Order is lookup priority for the header interpreter. Built once at
    process start and passed explicitly to whatever needs it.
    """

    __slots__ = ("_profiles", "_by_name")

    def __init__(self, profiles: Iterable[ProviderProfile]) -> None:
        ordered = tuple(profiles)
        by_name: dict[str, ProviderProfile] = {}
        for profile in ordered:
            key = profile.name.lower()
            if key in by_name:
                raise ValueError(f"Duplicate provider name: {profile.name!r}")
            by_name[key] = profile

        self._profiles = ordered
        self._by_name = by_name

    @classmethod
    def from_dicts(cls, payloads: Iterable[Mapping[str, Any]]) -> "ProviderRegistry":
        return cls(ProviderProfile.from_dict(payload) for payload in payloads)

    @classmethod
    def from_config(cls, config: ValidatorConfig) -> "ProviderRegistry":
        return cls.from_dicts(config.providers)

    def lookup(self, name: str | None) -> ProviderProfile | None:
        """Return the provider called `name` (case-insensitive), if registered."""

        if not name:
            return None
        return self._by_name.get(name.strip().lower())

    def all(self) -> tuple[ProviderProfile, ...]:
        return self._profiles

    def names(self) -> list[str]:
        return [profile.name for profile in self._profiles]

    def __iter__(self) -> Iterator[ProviderProfile]:
        return iter(self._profiles)

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.lookup(name) is not None

    def __repr__(self) -> str:
        return f"ProviderRegistry({self.names()!r})"


__all__ = ["ProviderRegistry"]
