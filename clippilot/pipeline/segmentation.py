"""Transcript-driven segmentation.

Walks the job's time window from its start, cutting one span at a time:

- span length is the band maximum, or whatever remains of the window if less
- a leftover tail shorter than the band minimum ends the walk
- spans with no overlapping transcript speech are skipped
- otherwise a clip is emitted with captions, thumbnails and scores
- the cursor then jumps past the span plus a fixed gap

Clips therefore come out in ascending start order and never overlap,
independent of their scores.
"""
import logging
import re
from typing import List, Optional, Tuple

from clippilot.pipeline.domain import (
    Caption,
    ClipCandidate,
    ClipOptions,
    Transcript,
    TranscriptSegment,
    Window,
)
from clippilot.pipeline.scoring import ClipScorer, HeuristicScorer

logger = logging.getLogger(__name__)


# (min, max) seconds per length preset
LENGTH_BANDS = {
    "short": (10.0, 25.0),
    "medium": (25.0, 45.0),
    "long": (45.0, 90.0),
}
CUSTOM_DEFAULT_BAND = (10.0, 60.0)
CUSTOM_LIMITS = (5.0, 300.0)

DEFAULT_GAP_SEC = 5.0
DEFAULT_MAX_CLIPS = 10
THUMBNAIL_FRACTIONS = (0.1, 0.5, 0.9)
TITLE_TEXT_CHARS = 50

# Ignore float noise when comparing the cursor to the window end
_EPSILON = 1e-6

_STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "be", "been", "have", "has",
    "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "can", "this", "that", "these", "those", "i", "you", "he", "she",
    "it", "we", "they", "from", "what", "when", "where", "which", "there",
    "their", "them", "then", "than", "just", "very", "also", "about", "into",
})


def resolve_duration_band(options: ClipOptions) -> Tuple[float, float]:
    """
    Target clip duration band ``(min, max)`` in seconds for the options.
    
    Custom bounds default to 10-60s, are clamped to 5-300s and swapped if
    given in the wrong order.
    """
    if options.clip_length_preset != "custom":
        return LENGTH_BANDS[options.clip_length_preset]
    
    low, high = CUSTOM_LIMITS
    min_dur = options.clip_length_min_sec or CUSTOM_DEFAULT_BAND[0]
    max_dur = options.clip_length_max_sec or CUSTOM_DEFAULT_BAND[1]
    min_dur = max(low, min(high, float(min_dur)))
    max_dur = max(low, min(high, float(max_dur)))
    if min_dur > max_dur:
        min_dur, max_dur = max_dur, min_dur
    return min_dur, max_dur


def overlapping_segments(
    segments: List[TranscriptSegment],
    start: float,
    end: float,
) -> List[TranscriptSegment]:
    """Segments with ``segment.start < end`` and ``segment.end > start``."""
    return [seg for seg in segments if seg.start < end and seg.end > start]


def extract_keywords(text: str, limit: int = 3) -> List[str]:
    """First ``limit`` non-stopword words longer than three characters."""
    keywords = []
    for word in re.findall(r"[a-z0-9']+", text.lower()):
        word = word.strip("'")
        if len(word) > 3 and word not in _STOPWORDS and word not in keywords:
            keywords.append(word)
            if len(keywords) >= limit:
                break
    return keywords


def build_captions(
    segments: List[TranscriptSegment],
    clip_start: float,
    clip_end: float,
    words_per_caption: int,
    highlight_keywords: bool = False,
) -> List[Caption]:
    """
    Project overlapping segments onto the clip interval as captions.
    
    Each segment is clamped to ``[clip_start, clip_end]`` and split into
    chunks of ``words_per_caption`` words whose times are interpolated by
    word position. Every caption lies inside the clip interval.
    """
    captions: List[Caption] = []
    for seg in segments:
        start = max(seg.start, clip_start)
        end = min(seg.end, clip_end)
        tokens = seg.text.split()
        if end <= start or not tokens:
            continue
        
        span = end - start
        total = len(tokens)
        for i in range(0, total, words_per_caption):
            chunk = tokens[i:i + words_per_caption]
            chunk_start = start + span * i / total
            chunk_end = end if i + len(chunk) >= total else start + span * (i + len(chunk)) / total
            text = " ".join(chunk)
            captions.append(Caption(
                start_sec=round(chunk_start, 3),
                end_sec=round(chunk_end, 3),
                text=text,
                keywords=extract_keywords(text) if highlight_keywords else None,
            ))
    
    # Rounding must not push a caption outside the clip
    for caption in captions:
        caption.start_sec = max(caption.start_sec, clip_start)
        caption.end_sec = min(caption.end_sec, clip_end)
    return captions


def thumbnail_timestamps(start: float, end: float) -> List[float]:
    """Thumbnail candidates at 10%, 50% and 90% of the clip."""
    duration = end - start
    return [round(start + duration * f, 3) for f in THUMBNAIL_FRACTIONS]


def clip_title(index: int, text: str) -> str:
    text = " ".join(text.split())
    if len(text) > TITLE_TEXT_CHARS:
        text = text[:TITLE_TEXT_CHARS].rstrip() + "..."
    return f"Clip {index}: {text}" if text else f"Clip {index}"


def segment_transcript(
    transcript: Transcript,
    options: ClipOptions,
    scorer: Optional[ClipScorer] = None,
    gap_sec: float = DEFAULT_GAP_SEC,
    max_clips: int = DEFAULT_MAX_CLIPS,
) -> List[ClipCandidate]:
    """
    Convert a transcript into ordered, non-overlapping clip candidates.
    
    Args:
        transcript: Transcript in absolute source seconds
        options: Job options; their time window bounds every clip
        scorer: Scoring heuristic (defaults to HeuristicScorer)
        gap_sec: Gap between the end of one span and the start of the next
        max_clips: Hard cap on emitted clips
        
    Returns:
        Clips sorted by ascending start time; empty if no speech overlaps the window
    """
    scorer = scorer or HeuristicScorer()
    window = options.window
    min_dur, max_dur = resolve_duration_band(options)
    segments = transcript.normalized().within(window).segments
    
    clips: List[ClipCandidate] = []
    cursor = window.start
    
    while window.end - cursor > _EPSILON and len(clips) < max_clips:
        remaining = window.end - cursor
        # Only a window that is short from the start may yield a sub-minimum clip
        if cursor > window.start and remaining < min_dur:
            break
        span = min(max_dur, remaining)
        span_start = cursor
        span_end = cursor + span
        
        relevant = overlapping_segments(segments, span_start, span_end)
        if relevant:
            index = len(clips) + 1
            text = " ".join(seg.text for seg in relevant)
            clip_window = Window(span_start, span_end)
            captions = (
                build_captions(
                    relevant,
                    span_start,
                    span_end,
                    options.words_per_caption,
                    options.highlight_keywords,
                )
                if options.captions_enabled
                else []
            )
            clips.append(ClipCandidate(
                id=f"clip-{index}",
                title=clip_title(index, text),
                start_sec=span_start,
                end_sec=span_end,
                aspect_ratio=options.aspect_ratio,
                template=options.template,
                has_captions=options.captions_enabled,
                has_meme_hook=options.meme_hook,
                scores=scorer.score(relevant, clip_window, options),
                captions=captions,
                thumbnail_candidates=thumbnail_timestamps(span_start, span_end),
            ))
        
        cursor = span_end + gap_sec
    
    logger.info(f"Segmented {window} into {len(clips)} clips (band {min_dur}-{max_dur}s)")
    return clips
