"""Localized update instructions shown to blocked clients."""

from typing import Mapping

DEFAULT_LANGUAGE = "en"

UPDATE_MESSAGES: dict[str, str] = {
    "en": "A new version of the app is available. Please update to version {min_version} or higher to continue.",
    "bn": "অ্যাপের নতুন সংস্করণ পাওয়া যাচ্ছে। চালিয়ে যেতে অনুগ্রহ করে সংস্করণ {min_version} বা তার পরের সংস্করণে আপডেট করুন।",
}


def preferred_language(headers: Mapping[str, str]) -> str:
    """Pick the first supported language from Accept-Language, ignoring q-weights."""
    lowered = {str(k).lower(): v for k, v in headers.items()}
    accept = str(lowered.get("accept-language") or "")
    for part in accept.split(","):
        tag = part.split(";")[0].strip().lower()
        primary = tag.split("-")[0]
        if primary in UPDATE_MESSAGES:
            return primary
    return DEFAULT_LANGUAGE


def update_message(min_version: str, language: str = DEFAULT_LANGUAGE) -> str:
    template = UPDATE_MESSAGES.get(language, UPDATE_MESSAGES[DEFAULT_LANGUAGE])
    return template.format(min_version=min_version)
