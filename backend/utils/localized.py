"""Swedish/English text with a legacy single-language fallback.

Extras and offer items carry ``<field>_sv``, ``<field>_en`` and a legacy
``<field>`` written before the second language existed. Every read and every
write resolves through ``LocalizedText`` so the fallback order is defined once.
"""
from dataclasses import dataclass
from typing import Any, Dict, Optional

from models import Language


def pick_language(lang: Optional[str]) -> Language:
    """``en`` selects English; anything else, including nothing, is Swedish."""
    return Language.EN if str(lang or "").strip().lower() == Language.EN.value else Language.SV


@dataclass(frozen=True)
class LocalizedText:
    sv: str = ""
    en: str = ""
    legacy: str = ""

    @classmethod
    def from_doc(cls, doc: Dict[str, Any], field: str) -> "LocalizedText":
        return cls(
            sv=doc.get(f"{field}_sv") or "",
            en=doc.get(f"{field}_en") or "",
            legacy=doc.get(field) or "",
        )

    @property
    def is_empty(self) -> bool:
        return not (self.sv or self.en or self.legacy)

    def resolve(self, lang: Language) -> str:
        """Preferred language, then the legacy field, then the other language."""
        if lang == Language.EN:
            return self.en or self.legacy or self.sv
        return self.sv or self.legacy or self.en

    def filled(self) -> "LocalizedText":
        """Copy where every empty slot borrows from the others.

        Legacy prefers Swedish (it predates English); each language prefers the
        legacy value before the other language.
        """
        return LocalizedText(
            sv=self.sv or self.legacy or self.en,
            en=self.en or self.legacy or self.sv,
            legacy=self.legacy or self.sv or self.en,
        )
