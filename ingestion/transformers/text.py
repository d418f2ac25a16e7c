"""
Text helpers shared by the deriver, the sentiment analyzer and the
word-frequency endpoint.
"""

import re
from typing import Iterable, List, Sequence

WHITESPACE_RE = re.compile(r"\s+")
SPECIAL_CHARS_RE = re.compile(r"[^\w\s.,!?-]")
TOKEN_SPLIT_RE = re.compile(r"[\W_]+")
HTML_TAG_RE = re.compile(r"<[^>]+>")

COVID_KEYWORDS: Sequence[str] = (
    "covid", "coronavirus", "pandemic", "vaccine", "vaccination",
    "lockdown", "quarantine", "social distancing", "mask",
    "indonesia", "jakarta", "jawa", "sulawesi", "sumatra",
)

INDONESIAN_MARKERS = frozenset({"yang", "dan", "atau", "dengan", "untuk", "dari", "ke", "di", "pada"})
ENGLISH_MARKERS = frozenset({"the", "and", "or", "with", "for", "from", "to", "in", "on", "at"})

STOP_WORDS = frozenset({
    # English
    "the", "and", "for", "are", "but", "not", "you", "all", "any", "can", "had",
    "her", "was", "one", "our", "out", "has", "have", "his", "how", "its", "may",
    "new", "now", "old", "see", "two", "who", "did", "get", "him", "she", "too",
    "use", "that", "with", "this", "from", "they", "will", "would", "there",
    "their", "what", "about", "which", "when", "were", "been", "more", "than",
    "them", "then", "into", "just", "your", "some", "could", "also", "after",
    "over", "only", "other", "these", "those", "very", "here", "says", "said",
    # Indonesian
    "yang", "dan", "atau", "dengan", "untuk", "dari", "pada", "ini", "itu",
    "akan", "juga", "tidak", "ada", "dalam", "oleh", "sudah", "bisa", "karena",
    "kita", "kami", "mereka", "saya", "anda", "telah", "lebih", "masih", "hari",
    "tahun", "para", "serta", "bagi", "saat", "secara",
    # Domain
    "covid", "covid19", "corona", "coronavirus", "virus", "https", "http", "www", "com",
})


def clean_text(text) -> str:
    """Strip markup, collapse whitespace and drop unusual characters."""
    if text is None:
        return ""
    text = HTML_TAG_RE.sub(" ", str(text))
    text = WHITESPACE_RE.sub(" ", text.strip())
    return SPECIAL_CHARS_RE.sub("", text).strip()


def tokenize(text: str) -> List[str]:
    """Split on whitespace and punctuation, dropping single characters."""
    return [token for token in TOKEN_SPLIT_RE.split(text or "") if len(token) > 1]


def word_count(text: str) -> int:
    return len((text or "").split())


def detect_language(text: str) -> str:
    """Return 'id', 'en' or 'unknown' from common function words."""
    tokens = {token.lower() for token in tokenize(text)}
    if not tokens:
        return "unknown"
    if tokens & INDONESIAN_MARKERS:
        return "id"
    if tokens & ENGLISH_MARKERS:
        return "en"
    return "unknown"


def relevance_score(text: str, keywords: Iterable[str] = COVID_KEYWORDS) -> float:
    """
    Share of COVID keywords present in the text.

    Always within [0.0, 1.0].
    """
    keywords = list(keywords)
    if not text or not keywords:
        return 0.0

    lowered = text.lower()
    matches = sum(1 for keyword in keywords if keyword.lower() in lowered)
    return min(1.0, max(0.0, matches / len(keywords)))


def frequency_words(text: str) -> List[str]:
    """Lowercase alphabetic tokens of 3+ letters, minus stop words."""
    return [
        token for token in (t.lower() for t in tokenize(text))
        if len(token) >= 3 and token.isalpha() and token not in STOP_WORDS
    ]
