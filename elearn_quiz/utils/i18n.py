from typing import Optional

SUPPORTED_LANGS = ("UA", "PL", "EN")


def normalize_lang(lang: Optional[str]) -> Optional[str]:
    if not lang:
        return None
    lang = lang.strip().upper()
    return lang if lang in SUPPORTED_LANGS else None


def localize(translations: Optional[dict], fallback: str, lang: Optional[str]) -> str:
    """
    Texte localisé : langue demandée -> EN -> UA -> PL -> fallback.
    Sans langue (ou langue inconnue) on sert le texte brut.
    """
    lang = normalize_lang(lang)
    if not lang or not isinstance(translations, dict):
        return fallback

    if translations.get(lang):
        return translations[lang]
    for other in ("EN", "UA", "PL"):
        if translations.get(other):
            return translations[other]
    return fallback
