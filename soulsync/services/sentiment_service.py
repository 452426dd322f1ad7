# soulsync/services/sentiment_service.py
"""
Lexicon sentiment scoring

AFINN polarity lookup per token, flipped when the previous token is a negator
("not bad" scores positive). Then two corrections before bucketing:
a negation-phrase table (first match wins, and its penalty replaces the polarity
of the words it covers) and an additive custom-word table.
The thresholds and table values are contract values; tests depend on them.
"""

import math
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from afinn import Afinn

from soulsync.schemas.sentiment_schemas import Mood, SentimentResult

CUSTOM_WORDS: Dict[str, int] = {
    # Strengthen positive words
    "wonderful": 5,
    "fantastic": 5,
    "thrilled": 5,
    "grateful": 4,
    "blessed": 4,
    "amazing": 5,
    "excellent": 4,
    "delighted": 4,

    # Strengthen negative words
    "devastated": -5,
    "miserable": -5,
    "terrible": -4,
    "awful": -4,
    "horrible": -4,
    "depressing": -4,

    # Common conversational phrases
    "not good": -2,
    "not bad": 1,
    "not happy": -3,
    "not sad": 1,
    "not great": -1,
    "not pleased": -2,
    "not satisfied": -2,
}

NEGATION_PATTERNS: List[Tuple[Pattern, int]] = [
    (re.compile(r"not\s+what\s+\w+\s+wanted", re.IGNORECASE), -2),
    (re.compile(r"not\s+happy", re.IGNORECASE), -3),
    (re.compile(r"not\s+good", re.IGNORECASE), -2),
    (re.compile(r"not\s+satisfied", re.IGNORECASE), -2),
    (re.compile(r"not\s+pleased", re.IGNORECASE), -2),
    (re.compile(r"not\s+great", re.IGNORECASE), -1),
]

# A lexicon word right after one of these has its polarity flipped
NEGATORS = frozenset({
    "not", "no", "never", "non", "cannot",
    "cant", "can't", "dont", "don't", "doesnt", "doesn't", "didnt", "didn't",
    "isnt", "isn't", "wasnt", "wasn't", "arent", "aren't", "wont", "won't",
    "wouldnt", "wouldn't", "shouldnt", "shouldn't", "couldnt", "couldn't",
    "havent", "haven't", "hasnt", "hasn't",
});

# Mood bucket thresholds on the adjusted comparative score
VERY_POSITIVE_THRESHOLD = 0.8
POSITIVE_THRESHOLD = 0.15
VERY_NEGATIVE_THRESHOLD = -0.6
NEGATIVE_THRESHOLD = -0.10

# Five-point map used to compare lexicon and LLM moods
MOOD_SCORES: Dict[Mood, float] = {
    Mood.VERY_NEGATIVE: -1.0,
    Mood.NEGATIVE: -0.5,
    Mood.NEUTRAL: 0.0,
    Mood.POSITIVE: 0.5,
    Mood.VERY_POSITIVE: 1.0,
}

MOOD_EMOJIS = {
    Mood.VERY_POSITIVE: "😊",
    Mood.POSITIVE: "🙂",
    Mood.NEUTRAL: "😐",
    Mood.NEGATIVE: "😔",
    Mood.VERY_NEGATIVE: "😢",
}

MOOD_COLORS = {
    Mood.VERY_POSITIVE: "#10b981",
    Mood.POSITIVE: "#84cc16",
    Mood.NEUTRAL: "#94a3b8",
    Mood.NEGATIVE: "#f59e0b",
    Mood.VERY_NEGATIVE: "#ef4444",
}

_PUNCTUATION = re.compile(r"[.,/#!$%^&*;:{}=_`\"~()]")


def tokenize(text: str) -> List[str]:
    cleaned = _PUNCTUATION.sub("", text.lower().replace("\n", " "))
    return cleaned.split()


def get_mood_category(comparative: float) -> Mood:
    if comparative >= VERY_POSITIVE_THRESHOLD:
        return Mood.VERY_POSITIVE
    if comparative >= POSITIVE_THRESHOLD:
        return Mood.POSITIVE
    if comparative <= VERY_NEGATIVE_THRESHOLD:
        return Mood.VERY_NEGATIVE
    if comparative <= NEGATIVE_THRESHOLD:
        return Mood.NEGATIVE
    return Mood.NEUTRAL


def mood_deviation(lexicon_mood: Mood, llm_mood: Mood) -> float:
    return abs(MOOD_SCORES[Mood(lexicon_mood)] - MOOD_SCORES[Mood(llm_mood)])


def get_mood_emoji(mood: str) -> str:
    try:
        return MOOD_EMOJIS[Mood(mood)]
    except ValueError:
        return MOOD_EMOJIS[Mood.NEUTRAL]


def get_mood_color(mood: str) -> str:
    try:
        return MOOD_COLORS[Mood(mood)]
    except ValueError:
        return MOOD_COLORS[Mood.NEUTRAL]


class LexiconSentimentScorer:
    """Synchronous rule-based scorer. Never raises."""

    def __init__(
        self,
        custom_words: Optional[Dict[str, int]] = None,
        negation_patterns: Optional[Sequence[Tuple[Pattern, int]]] = None,
    ):
        self.afinn = Afinn(language="en")
        self.custom_words = CUSTOM_WORDS if custom_words is None else custom_words
        self.negation_patterns = NEGATION_PATTERNS if negation_patterns is None else negation_patterns

    def _negation(self, text: str) -> Tuple[int, str]:
        """Penalty of the first matching phrase, and the text with that phrase cut out."""
        for pattern, penalty in self.negation_patterns:
            match = pattern.search(text)
            if match:
                return penalty, text[: match.start()] + " " + text[match.end():]
        return 0, text

    def _lexicon_score(self, tokens: Sequence[str]) -> Tuple[float, List[str]]:
        """Per-token AFINN polarity, flipped after a negator."""
        total = 0.0
        words = []
        for i, token in enumerate(tokens):
            value = self.afinn.score(token)
            if not value:
                continue
            if i > 0 and tokens[i - 1] in NEGATORS:
                value = -value
            total += value
            words.append(token)
        return total, words

    def _custom_boost(self, lower_text: str, lexicon_words: Iterable[str]) -> int:
        matched = set(lexicon_words)
        boost = 0
        for word, value in self.custom_words.items():
            # Words the lexicon already scored are not counted twice
            if word in lower_text and word not in matched:
                boost += value
        return boost

    def score(self, text) -> SentimentResult:
        if not text or not isinstance(text, str):
            return SentimentResult()

        tokens = tokenize(text)
        if not tokens:
            return SentimentResult()

        # A negation phrase replaces the polarity of the words it covers
        negation_penalty, remaining = self._negation(text)
        base_score, lexicon_words = self._lexicon_score(tokenize(remaining))
        custom_boost = self._custom_boost(remaining.lower(), lexicon_words)

        token_count = len(tokens)
        adjusted_score = base_score + negation_penalty + custom_boost
        comparative = adjusted_score / token_count

        confidence = min(abs(comparative) * 100, 100)
        return SentimentResult(
            score=adjusted_score,
            comparative=comparative,
            mood=get_mood_category(comparative),
            confidence=int(math.floor(confidence + 0.5)),
        )

    def analyze_multiple(self, texts: Sequence[str]) -> Dict:
        """Aggregate mood over several messages."""
        if not texts:
            return summarize_moods([])
        return summarize_moods([self.score(text).model_dump(mode="json") for text in texts])


def summarize_moods(sentiments: Sequence[Dict]) -> Dict:
    """Aggregate `{score, comparative, mood}` dicts into a mood summary."""
    if not sentiments:
        return {
            "total_messages": 0,
            "average_score": 0.0,
            "average_comparative": 0.0,
            "dominant_mood": Mood.NEUTRAL.value,
            "dominant_emoji": get_mood_emoji(Mood.NEUTRAL),
            "dominant_color": get_mood_color(Mood.NEUTRAL),
            "mood_distribution": {},
        }

    total = len(sentiments)
    distribution = Counter(s["mood"] for s in sentiments)
    dominant_mood = distribution.most_common(1)[0][0]

    return {
        "total_messages": total,
        "average_score": round(sum(s["score"] or 0 for s in sentiments) / total, 2),
        "average_comparative": round(sum(s["comparative"] or 0 for s in sentiments) / total, 2),
        "dominant_mood": dominant_mood,
        "dominant_emoji": get_mood_emoji(dominant_mood),
        "dominant_color": get_mood_color(dominant_mood),
        "mood_distribution": dict(distribution),
    }
