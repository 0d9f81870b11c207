"""Persona definitions and prompt builders for code commentary.

Predefined personas ship with the package; custom personas come from the
user's settings and are validated when the catalog is built.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from .ai_types import PersonaPrompt

LOGGER = logging.getLogger(__name__)

DEFAULT_PERSONA_ID = "en-roaster"
_PERSONA_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
_REQUIRED_FIELDS = ("name", "description", "header", "system_prompt")


@dataclass(slots=True, frozen=True)
class Persona:
    """Named system-prompt configuration selecting the commentary style."""

    id: str
    name: str
    description: str
    header: str
    system_prompt: str
    is_custom: bool = False

    def to_prompt(self) -> PersonaPrompt:
        return PersonaPrompt(system_prompt=self.system_prompt, display_header=self.header)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "header": self.header,
            "system_prompt": self.system_prompt,
        }


PREDEFINED_PERSONAS: Mapping[str, Persona] = {
    persona.id: persona
    for persona in (
        Persona(
            id="cn-roaster",
            name="锐评家",
            description="毒舌嘲讽，短小精悍",
            header="锐评",
            system_prompt=(
                "你是简体中文代码锐评家。选取代码中一个最值得讽刺的缺陷，用简洁、幽默、搞笑、有梗的语言进行嘲讽。"
                "充满讽刺味儿，短小精悍，像段子一样。结尾只给一个简短、有洞察的改进建议。只输出纯文本，无任何markdown或多余废话。"
            ),
        ),
        Persona(
            id="cn-praiser",
            name="夸夸家",
            description="花式狂夸，让人上头",
            header="夸夸",
            system_prompt=(
                "你是简体中文代码夸夸家。挑选代码中一个最值得吹爆的亮点，用简洁、幽默、搞笑、有梗的语言花式狂夸。"
                "充满吸睛梗点，像病毒段子一样传播，夸得天花乱坠、让人上头。结尾只给一个简短、有洞察的扩展建议。只输出纯文本，无任何markdown或多余废话。"
            ),
        ),
        Persona(
            id="en-roaster",
            name="Code Critic",
            description="Snarky roasting, punchy",
            header="Roast",
            system_prompt=(
                "You are a snarky English code critic. Pick the single most mockable flaw in the code and roast it "
                "with concise, witty, hilarious, meme-filled language. Overflowing with sarcasm, punchy and brief, "
                "like a stand-up comedy bit. End with only one short, insightful improvement suggestion. Output plain "
                "text only, no markdown or extra fluff."
            ),
        ),
        Persona(
            id="en-praiser",
            name="Code Hype-man",
            description="Wild praise, addictive",
            header="Hype",
            system_prompt=(
                "You are an enthusiastic English code hype-man. Pick the single most praiseworthy highlight in the "
                "code and hype it up with concise, witty, hilarious, meme-filled praise. Overflowing with viral-worthy "
                "hooks, spreading like an internet meme, praise so extravagantly it's addictive. End with only one "
                "short, insightful expansion suggestion. Output plain text only, no markdown or extra fluff."
            ),
        ),
    )
}


def build_user_prompt(file_label: str, content: str) -> str:
    """Return the user message sent alongside the persona's system prompt."""

    return f"{file_label}\n\n{content}"


def validate_custom_persona(payload: Mapping[str, Any]) -> Persona:
    """Build a custom :class:`Persona`, raising ``ValueError`` on bad input."""

    persona_id = str(payload.get("id") or "").strip()
    if not _PERSONA_ID_PATTERN.match(persona_id):
        raise ValueError(
            "Invalid persona id format. Only letters, numbers, hyphens, and underscores are allowed."
        )
    if persona_id in PREDEFINED_PERSONAS:
        raise ValueError(f'Persona id "{persona_id}" conflicts with a predefined persona.')
    values = {name: str(payload.get(name) or "").strip() for name in _REQUIRED_FIELDS}
    if not all(values.values()):
        raise ValueError("All fields (name, description, header, system_prompt) are required.")
    return Persona(id=persona_id, is_custom=True, **values)


class PersonaCatalog:
    """Resolves persona ids to prompts, predefined personas first."""

    def __init__(self, custom: Iterable[Mapping[str, Any]] | None = None) -> None:
        self._custom: dict[str, Persona] = {}
        for payload in custom or ():
            try:
                persona = validate_custom_persona(payload)
            except ValueError as exc:
                LOGGER.warning("Ignoring custom persona %r: %s", payload.get("id"), exc)
                continue
            if persona.id in self._custom:
                LOGGER.warning("Ignoring duplicate custom persona %r", persona.id)
                continue
            self._custom[persona.id] = persona

    def get(self, persona_id: str) -> Persona:
        if persona_id in PREDEFINED_PERSONAS:
            return PREDEFINED_PERSONAS[persona_id]
        persona = self._custom.get(persona_id)
        if persona is None:
            raise KeyError(f'Persona "{persona_id}" not found.')
        return persona

    def is_valid(self, persona_id: str) -> bool:
        return persona_id in PREDEFINED_PERSONAS or persona_id in self._custom

    def all(self) -> list[Persona]:
        return [*PREDEFINED_PERSONAS.values(), *self._custom.values()]

    def custom(self) -> list[Persona]:
        return list(self._custom.values())


__all__ = [
    "DEFAULT_PERSONA_ID",
    "PREDEFINED_PERSONAS",
    "Persona",
    "PersonaCatalog",
    "build_user_prompt",
    "validate_custom_persona",
]
