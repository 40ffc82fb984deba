"""Builders for domain objects used across tests."""
from clippilot.pipeline.domain import (
    ClipCandidate,
    ClipOptions,
    ClipScores,
    Transcript,
    TranscriptSegment,
)


def make_candidate(index: int, start: float, end: float) -> ClipCandidate:
    return ClipCandidate(
        id=f"clip-{index}",
        title=f"Clip {index}",
        start_sec=start,
        end_sec=end,
        aspect_ratio="9:16",
        template="clean",
        has_captions=False,
        has_meme_hook=False,
        scores=ClipScores(engagement=0.5, clarity=0.5, hook=0.5),
        thumbnail_candidates=[start, (start + end) / 2, end],
    )


def make_transcript(start: float, end: float, step: float = 5.0) -> Transcript:
    """One segment per ``step`` seconds across ``[start, end)``."""
    segments = []
    t = start
    while t < end:
        seg_end = min(t + step, end)
        segments.append(TranscriptSegment(t, seg_end, f"Why does this part at {t:.0f} matter to you?"))
        t = seg_end
    return Transcript(segments=segments, language="en")


def make_options(**overrides) -> ClipOptions:
    values = {"time_start_sec": 0.0, "time_end_sec": 300.0}
    values.update(overrides)
    return ClipOptions(**values)
