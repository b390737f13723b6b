"""Language detection used to steer reply language."""

from dataclasses import dataclass
from typing import Protocol

from langdetect import DetectorFactory, detect_langs

# Make langdetect deterministic across runs.
DetectorFactory.seed = 0

# Every profile langdetect ships with.
LANGUAGE_NAMES = {
    "af": "Afrikaans",
    "ar": "Arabic",
    "bg": "Bulgarian",
    "bn": "Bengali",
    "ca": "Catalan",
    "cs": "Czech",
    "cy": "Welsh",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "es": "Spanish",
    "et": "Estonian",
    "fa": "Persian",
    "fi": "Finnish",
    "fr": "French",
    "gu": "Gujarati",
    "he": "Hebrew",
    "hi": "Hindi",
    "hr": "Croatian",
    "hu": "Hungarian",
    "id": "Indonesian",
    "it": "Italian",
    "ja": "Japanese",
    "kn": "Kannada",
    "ko": "Korean",
    "lt": "Lithuanian",
    "lv": "Latvian",
    "mk": "Macedonian",
    "ml": "Malayalam",
    "mr": "Marathi",
    "ne": "Nepali",
    "nl": "Dutch",
    "no": "Norwegian",
    "pa": "Punjabi",
    "pl": "Polish",
    "pt": "Portuguese",
    "ro": "Romanian",
    "ru": "Russian",
    "sk": "Slovak",
    "sl": "Slovenian",
    "so": "Somali",
    "sq": "Albanian",
    "sv": "Swedish",
    "sw": "Swahili",
    "ta": "Tamil",
    "te": "Telugu",
    "th": "Thai",
    "tl": "Tagalog",
    "tr": "Turkish",
    "uk": "Ukrainian",
    "ur": "Urdu",
    "vi": "Vietnamese",
    "zh-cn": "Chinese",
    "zh-tw": "Chinese",
}


@dataclass(frozen=True)
class DetectedLanguage:
    """Best language guess for a piece of text."""

    code: str
    confidence: float

    @property
    def known(self) -> bool:
        return self.code in LANGUAGE_NAMES

    @property
    def name(self) -> str:
        return LANGUAGE_NAMES.get(self.code, self.code)


class LanguageDetector(Protocol):
    """Anything that can guess the language of a message."""

    def detect(self, text: str) -> DetectedLanguage | None: ...


class LangdetectDetector:
    """
    LanguageDetector backed by the langdetect package.

    langdetect reports near-certain but wrong guesses for a word or two
    ("yes" comes back as Turkish), so text shorter than `min_words` words
    or `min_letters` letters is not classified at all.
    """

    MIN_WORDS = 3
    MIN_LETTERS = 15

    def __init__(self, min_words: int = MIN_WORDS, min_letters: int = MIN_LETTERS) -> None:
        self.min_words = min_words
        self.min_letters = min_letters

    def is_too_short(self, text: str) -> bool:
        words = text.split()
        letters = sum(1 for ch in text if ch.isalpha())
        return len(words) < self.min_words or letters < self.min_letters

    def detect(self, text: str) -> DetectedLanguage | None:
        if not text.strip() or self.is_too_short(text):
            return None
        guesses = detect_langs(text)
        if not guesses:
            return None
        top = guesses[0]
        return DetectedLanguage(code=top.lang, confidence=float(top.prob))
