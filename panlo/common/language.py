"""
Language Detection

Picks the language a document summary should be written in when the caller
does not say. Uses langdetect, seeded for deterministic results.
"""

import logging
from typing import Optional

from langdetect import DetectorFactory, detect
from langdetect.lang_detect_exception import LangDetectException

logger = logging.getLogger("panlo.common.language")

DetectorFactory.seed = 0

DEFAULT_LANGUAGE = "en"

# Languages summaries are offered in, keyed by the codes clients send
LANGUAGE_NAMES = {
    "en": "English",
    "zh": "Simplified Chinese",
    "zh-TW": "Traditional Chinese",
    "ja": "Japanese",
    "ko": "Korean",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ar": "Arabic",
    "hi": "Hindi",
    "th": "Thai",
    "vi": "Vietnamese",
}

# langdetect codes that differ from the client codes above
_DETECTED_ALIASES = {
    "zh-cn": "zh",
    "zh-tw": "zh-TW",
}


def detect_language(text: str) -> str:
    """Detect a supported language code for text, defaulting to English"""
    if not text or len(text.strip()) < 10:
        return DEFAULT_LANGUAGE
    try:
        code = detect(text)
    except LangDetectException as e:
        logger.debug("Language detection failed: %s", e)
        return DEFAULT_LANGUAGE
    code = _DETECTED_ALIASES.get(code, code)
    return code if code in LANGUAGE_NAMES else DEFAULT_LANGUAGE


def resolve_language(language: Optional[str], text: str = "") -> str:
    """Use the requested language if supported, else detect it from text"""
    if language:
        if language in LANGUAGE_NAMES:
            return language
        lowered = language.lower()
        for code in LANGUAGE_NAMES:
            if code.lower() == lowered:
                return code
        logger.info("Unsupported summary language %r, falling back to English", language)
        return DEFAULT_LANGUAGE
    return detect_language(text)


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, LANGUAGE_NAMES[DEFAULT_LANGUAGE])
