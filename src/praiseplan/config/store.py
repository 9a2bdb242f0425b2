"""Hosted store (PostgREST) configuration."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars

STORE_URL_ENV = "PRAISEPLAN_STORE_URL"
STORE_KEY_ENV = "PRAISEPLAN_STORE_KEY"


@dataclass(frozen=True, slots=True)
class StoreConfig:
    """Holds connection values for the hosted relational store."""

    base_url: str
    api_key: str

    @property
    def rest_url(self) -> str:
        return self.base_url.rstrip("/") + "/rest/v1/"

    @classmethod
    def from_environment(cls) -> StoreConfig:
        values = require_env_vars((STORE_URL_ENV, STORE_KEY_ENV))
        return cls(base_url=values[STORE_URL_ENV], api_key=values[STORE_KEY_ENV])


def get_store_config() -> StoreConfig | None:
    """Return the hosted store configuration, or ``None`` to use the local database."""

    if optional_env_var(STORE_URL_ENV) is None:
        return None
    return StoreConfig.from_environment()
