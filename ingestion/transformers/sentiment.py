"""
Lexicon-based sentiment analysis for English and Indonesian text.

Score is the summed keyword weights divided by the token count, clamped to
[-1, 1]. Scores above +0.02 are positive, below -0.02 negative.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
from ingestion.transformers.text import tokenize
from models.base import Sentiment

POSITIVE_THRESHOLD = 0.02
NEGATIVE_THRESHOLD = -0.02

POSITIVE_KEYWORDS: Dict[str, float] = {
    "good": 0.7, "great": 0.8, "excellent": 0.9, "amazing": 0.9,
    "wonderful": 0.8, "fantastic": 0.8, "outstanding": 0.8,
    "successful": 0.8, "effective": 0.7, "efficient": 0.7,
    "improved": 0.6, "better": 0.6, "best": 0.7,
    "helpful": 0.6, "supportive": 0.6, "encouraging": 0.7,
    "recovery": 0.8, "recovered": 0.8, "healing": 0.7,
    "vaccine": 0.7, "vaccination": 0.7, "immunity": 0.6,
    "hope": 0.8, "optimistic": 0.7, "positive": 0.8,
    "decline": 0.6, "decrease": 0.6, "dropping": 0.6,
    "control": 0.6, "contained": 0.7, "stabilized": 0.6,
    "treatment": 0.6, "cure": 0.7, "prevention": 0.6,
    "baik": 0.7, "bagus": 0.7, "hebat": 0.8, "luar biasa": 0.9,
    "berhasil": 0.8, "sukses": 0.8, "efektif": 0.7,
    "meningkat": 0.6, "lebih baik": 0.6, "terbaik": 0.7,
    "membantu": 0.6, "mendukung": 0.6, "mendorong": 0.7,
    "sembuh": 0.8, "pulih": 0.8, "vaksin": 0.7, "imunisasi": 0.7,
    "harapan": 0.8, "optimis": 0.7, "positif": 0.8,
    "menurun": 0.6, "berkurang": 0.6, "terkendali": 0.7,
    "pengobatan": 0.6, "penyembuhan": 0.7, "pencegahan": 0.6,
}

NEGATIVE_KEYWORDS: Dict[str, float] = {
    "bad": -0.7, "terrible": -0.8, "awful": -0.8, "horrible": -0.9,
    "worst": -0.8, "failed": -0.8, "disaster": -0.9,
    "problem": -0.6, "issue": -0.6, "concern": -0.5,
    "worry": -0.6, "fear": -0.7, "anxiety": -0.7,
    "difficult": -0.5, "hard": -0.5, "challenging": -0.4,
    "death": -0.9, "died": -0.9, "lethal": -0.9,
    "infection": -0.6, "infected": -0.6, "contagious": -0.6,
    "spread": -0.5, "outbreak": -0.7, "pandemic": -0.6,
    "lockdown": -0.6, "quarantine": -0.6, "isolation": -0.6,
    "crisis": -0.7, "emergency": -0.6, "danger": -0.7,
    "severe": -0.6, "critical": -0.7, "serious": -0.6,
    "buruk": -0.7, "jelek": -0.7, "mengerikan": -0.8, "mengkhawatirkan": -0.7,
    "gagal": -0.8, "masalah": -0.6, "kekhawatiran": -0.6,
    "cemas": -0.6, "takut": -0.7, "khawatir": -0.6,
    "sulit": -0.5, "berat": -0.5, "menantang": -0.4,
    "meninggal": -0.9, "mati": -0.9, "fatal": -0.9,
    "terinfeksi": -0.6, "menular": -0.6, "penyebaran": -0.5,
    "wabah": -0.7, "pandemi": -0.6, "krisis": -0.7,
    "darurat": -0.6, "bahaya": -0.7, "mengancam": -0.6,
    "parah": -0.6, "kritis": -0.7, "serius": -0.6,
}

NEUTRAL_KEYWORDS = frozenset({
    "update", "report", "statistics", "information", "news", "announcement",
    "daily", "weekly", "monthly", "confirmed", "reported", "announced",
    "case", "number", "count",
    "laporan", "statistik", "informasi", "berita", "pengumuman",
    "harian", "mingguan", "bulanan", "dikonfirmasi", "dilaporkan", "diumumkan",
    "kasus", "jumlah", "hitung",
})


@dataclass
class SentimentResult:
    score: float = 0.0
    category: str = Sentiment.NEUTRAL.value
    confidence: float = 0.0
    keywords: List[str] = field(default_factory=list)


def _confidence(primary: int, secondary: int, total_words: int) -> float:
    classified = primary + secondary
    if total_words == 0 or classified == 0:
        return 0.0
    return min(1.0, (classified / total_words) * (primary / classified))


class SentimentAnalyzer:
    """
    Weighted keyword sentiment analyzer.

    Two-word phrases ("lebih baik") are matched before single tokens.
    """

    def __init__(
        self,
        positive: Optional[Dict[str, float]] = None,
        negative: Optional[Dict[str, float]] = None,
        neutral: Optional[frozenset] = None
    ):
        self.positive = positive if positive is not None else POSITIVE_KEYWORDS
        self.negative = negative if negative is not None else NEGATIVE_KEYWORDS
        self.neutral = neutral if neutral is not None else NEUTRAL_KEYWORDS

    def analyze(self, text: str) -> SentimentResult:
        words = [w.lower() for w in tokenize(text)]
        if not words:
            return SentimentResult()

        total = 0.0
        found = []
        positive_count = negative_count = neutral_count = 0

        i = 0
        while i < len(words):
            term = words[i]
            step = 1
            if i + 1 < len(words):
                phrase = f"{words[i]} {words[i + 1]}"
                if phrase in self.positive or phrase in self.negative:
                    term = phrase
                    step = 2

            if term in self.positive:
                total += self.positive[term]
                positive_count += 1
                found.append(term)
            elif term in self.negative:
                total += self.negative[term]
                negative_count += 1
                found.append(term)
            elif term in self.neutral:
                neutral_count += 1
            i += step

        score = max(-1.0, min(1.0, total / len(words)))

        if score > POSITIVE_THRESHOLD:
            category = Sentiment.POSITIVE.value
            confidence = _confidence(positive_count, negative_count, len(words))
        elif score < NEGATIVE_THRESHOLD:
            category = Sentiment.NEGATIVE.value
            confidence = _confidence(negative_count, positive_count, len(words))
        else:
            category = Sentiment.NEUTRAL.value
            confidence = _confidence(neutral_count, positive_count + negative_count, len(words))

        return SentimentResult(score=score, category=category, confidence=confidence, keywords=found)

    def analyze_batch(self, texts: List[str]) -> List[SentimentResult]:
        return [self.analyze(text) for text in texts]
