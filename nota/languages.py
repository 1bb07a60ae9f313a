"""
Output language table and locale resolution.
"""

from __future__ import annotations

import locale

DEFAULT_TAG = "en-US"

# primary code -> (locale tag, native display name)
LANGUAGES: dict[str, tuple[str, str]] = {
    "en": ("en-US", "English"),
    "ru": ("ru-RU", "Русский"),
    "es": ("es-ES", "Español"),
    "fr": ("fr-FR", "Français"),
    "de": ("de-DE", "Deutsch"),
    "zh": ("zh-CN", "中文"),
    "ja": ("ja-JP", "日本語"),
    "ko": ("ko-KR", "한국어"),
    "pt": ("pt-BR", "Português"),
    "it": ("it-IT", "Italiano"),
    "nl": ("nl-NL", "Nederlands"),
    "sv": ("sv-SE", "Svenska"),
    "da": ("da-DK", "Dansk"),
    "no": ("nb-NO", "Norsk"),
    "fi": ("fi-FI", "Suomi"),
    "pl": ("pl-PL", "Polski"),
    "tr": ("tr-TR", "Türkçe"),
    "ar": ("ar-SA", "العربية"),
    "he": ("he-IL", "עברית"),
    "hi": ("hi-IN", "हिन्दी"),
    "th": ("th-TH", "ไทย"),
    "vi": ("vi-VN", "Tiếng Việt"),
}

# English names for prompts
_ENGLISH_NAMES = {
    "en": "English", "ru": "Russian", "es": "Spanish", "fr": "French", "de": "German",
    "zh": "Chinese", "ja": "Japanese", "ko": "Korean", "pt": "Portuguese", "it": "Italian",
    "nl": "Dutch", "sv": "Swedish", "da": "Danish", "no": "Norwegian", "fi": "Finnish",
    "pl": "Polish", "tr": "Turkish", "ar": "Arabic", "he": "Hebrew", "hi": "Hindi",
    "th": "Thai", "vi": "Vietnamese",
}


def supported_languages() -> list[tuple[str, str]]:
    return [("auto", "Auto-detect")] + [(code, name) for code, (_, name) in LANGUAGES.items()]


def primary_code(tag: str | None) -> str:
    """'ru-RU' -> 'ru', 'pt_BR.UTF-8' -> 'pt', 'nb-NO' -> 'no'."""
    raw = str(tag or "").strip().lower()
    if not raw:
        return "en"
    code = raw.replace("_", "-").split(".")[0].split("-")[0]
    if code == "nb":
        return "no"
    return code or "en"


def system_locale() -> str:
    try:
        current = locale.getlocale()[0]
    except ValueError:
        current = None
    return str(current or DEFAULT_TAG)


def resolve_language(hint: str | None, system: str | None = None) -> str:
    """
    Resolve a language hint ('auto', 'ru', 'ru-RU') to a full locale tag.
    'auto' follows the system locale. Unknown languages resolve to en-US.
    """
    raw = str(hint or "auto").strip()
    if raw.lower() == "auto":
        raw = system if system is not None else system_locale()

    code = primary_code(raw)
    entry = LANGUAGES.get(code)
    return entry[0] if entry else DEFAULT_TAG


def language_name(code_or_tag: str | None) -> str:
    return _ENGLISH_NAMES.get(primary_code(code_or_tag), "English")
