"""Config provider that answers panel lookups from :class:`Settings`."""

from __future__ import annotations

import logging
from dataclasses import replace

from ...ai.ai_types import EndpointConfig, PersonaPrompt
from ...ai.prompts import DEFAULT_PERSONA_ID, PersonaCatalog
from ...errors import ConfigurationError
from ...services.settings import Settings, validate_endpoint

__all__ = ["SettingsConfigProvider"]

_LOGGER = logging.getLogger(__name__)


class SettingsConfigProvider:
    """Exposes credential, endpoint and persona settings to the orchestrator."""

    __slots__ = ("_settings", "_catalog")

    def __init__(self, settings: Settings, *, catalog: PersonaCatalog | None = None) -> None:
        self._settings = settings
        self._catalog = catalog or PersonaCatalog(settings.custom_personas)

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def catalog(self) -> PersonaCatalog:
        return self._catalog

    def update(self, settings: Settings) -> None:
        """Swap in new settings; the next refresh picks them up."""

        if settings.custom_personas != self._settings.custom_personas:
            self._catalog = PersonaCatalog(settings.custom_personas)
        self._settings = settings

    def select_persona(self, persona_id: str) -> None:
        if not self._catalog.is_valid(persona_id):
            raise KeyError(f'Persona "{persona_id}" not found.')
        self._settings = replace(self._settings, persona_id=persona_id)

    async def get_credential(self) -> str | None:
        key = (self._settings.api_key or "").strip()
        return key or None

    async def get_endpoint_config(self) -> EndpointConfig | None:
        try:
            base_url, model = validate_endpoint(self._settings.base_url, self._settings.model)
        except ConfigurationError as exc:
            _LOGGER.warning("Endpoint configuration rejected: %s", exc.message)
            return None
        return EndpointConfig(base_url=base_url, model=model)

    def get_current_persona_id(self) -> str:
        return self._settings.persona_id or DEFAULT_PERSONA_ID

    def get_persona_prompt(self, persona_id: str) -> PersonaPrompt:
        try:
            persona = self._catalog.get(persona_id)
        except KeyError:
            _LOGGER.warning("Unknown persona %r; falling back to %s", persona_id, DEFAULT_PERSONA_ID)
            persona = self._catalog.get(DEFAULT_PERSONA_ID)
        return persona.to_prompt()
