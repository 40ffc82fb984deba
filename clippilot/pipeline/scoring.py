"""Clip scoring heuristics.

Scores are informational only: clip order never depends on them. Any scorer
must be deterministic for a given input and keep every axis in [0, 1].
"""
import re
from typing import List, Protocol

from clippilot.pipeline.domain import ClipOptions, ClipScores, TranscriptSegment, Window


_WORD_RE = re.compile(r"[A-Za-z0-9']+")
_HOOK_WORDS = frozenset({
    "secret", "why", "how", "never", "always", "best", "worst", "stop",
    "mistake", "truth", "wait", "imagine", "crazy", "insane", "nobody",
})
_SECOND_PERSON = frozenset({"you", "your", "you're", "youre", "yourself"})


def _clamp(value: float) -> float:
    return round(max(0.0, min(1.0, value)), 3)


def words(text: str) -> List[str]:
    """Lowercased word tokens."""
    return [w.lower() for w in _WORD_RE.findall(text)]


class ClipScorer(Protocol):
    """Pluggable scoring function."""
    
    def score(
        self,
        segments: List[TranscriptSegment],
        window: Window,
        options: ClipOptions,
    ) -> ClipScores:
        ...


class HeuristicScorer:
    """Deterministic transcript-only scorer."""
    
    # Words per second counted as fully dense speech
    target_words_per_sec: float = 3.0
    hook_word_count: int = 12
    
    def score(
        self,
        segments: List[TranscriptSegment],
        window: Window,
        options: ClipOptions,
    ) -> ClipScores:
        text = " ".join(seg.text for seg in segments)
        tokens = words(text)
        duration = max(window.duration, 1e-6)
        
        # Engagement: speech density plus exclamations
        density = min(1.0, (len(tokens) / duration) / self.target_words_per_sec)
        exclaims = min(1.0, text.count("!") / 3)
        engagement = 0.25 + 0.55 * density + 0.2 * exclaims
        
        # Clarity: how much of the window is speech, and how plain the words are
        spoken = sum(
            max(0.0, min(seg.end, window.end) - max(seg.start, window.start))
            for seg in segments
        )
        coverage = min(1.0, spoken / duration)
        long_ratio = (
            sum(1 for t in tokens if len(t) > 12) / len(tokens) if tokens else 1.0
        )
        clarity = 0.2 + 0.6 * coverage + 0.2 * (1.0 - long_ratio)
        
        # Hook: how the first few words open
        opening_text = " ".join(tokens[: self.hook_word_count])
        opening = set(tokens[: self.hook_word_count])
        first_text = segments[0].text if segments else ""
        hook = 0.2
        if "?" in first_text:
            hook += 0.25
        if opening & _SECOND_PERSON:
            hook += 0.2
        if re.search(r"\d", opening_text):
            hook += 0.15
        if opening & _HOOK_WORDS:
            hook += 0.2
        
        return ClipScores(
            engagement=_clamp(engagement),
            clarity=_clamp(clarity),
            hook=_clamp(hook),
        )
