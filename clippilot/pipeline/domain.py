"""Value objects shared by the clip pipeline stages."""
import math
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Literal, Optional

from clippilot.errors import InvalidSource


LengthPreset = Literal["short", "medium", "long", "custom"]
AspectRatio = Literal["9:16", "16:9", "1:1", "auto"]
Template = Literal["clean", "creator", "meme"]
Quality = Literal["low", "medium", "high"]

LENGTH_PRESETS = ("short", "medium", "long", "custom")
ASPECT_RATIOS = ("9:16", "16:9", "1:1", "auto")
TEMPLATES = ("clean", "creator", "meme")
QUALITIES = ("low", "medium", "high")

MIN_WORDS_PER_CAPTION = 3
MAX_WORDS_PER_CAPTION = 10


@dataclass(frozen=True)
class Window:
    """Half-open time interval ``[start, end)`` in seconds."""
    start: float
    end: float
    
    @property
    def duration(self) -> float:
        return self.end - self.start
    
    def __repr__(self):
        return f"Window({self.start:.2f}-{self.end:.2f})"


@dataclass(frozen=True)
class ClipOptions:
    """Options requested for one job. Immutable once the job is created."""
    time_start_sec: float
    time_end_sec: float
    clip_length_preset: LengthPreset = "short"
    clip_length_min_sec: Optional[float] = None
    clip_length_max_sec: Optional[float] = None
    aspect_ratio: AspectRatio = "9:16"
    template: Template = "clean"
    meme_hook: bool = False
    game_mode: bool = False
    hook_title: bool = False
    call_to_action: bool = False
    background_music: bool = False
    captions_enabled: bool = True
    words_per_caption: int = 5
    highlight_keywords: bool = False
    auto_thumbnail: bool = True
    
    @property
    def window(self) -> Window:
        return Window(self.time_start_sec, self.time_end_sec)
    
    def validate(self) -> "ClipOptions":
        """
        Check the options independently of the source video.
        
        Raises:
            InvalidSource: If the time range or any enumerated option is invalid
        """
        if not (math.isfinite(self.time_start_sec) and math.isfinite(self.time_end_sec)):
            raise InvalidSource("Invalid time range specified")
        if self.time_start_sec < 0 or self.time_end_sec <= self.time_start_sec:
            raise InvalidSource("Invalid time range specified")
        if self.clip_length_preset not in LENGTH_PRESETS:
            raise InvalidSource(f"Unknown clip length preset: {self.clip_length_preset}")
        if self.aspect_ratio not in ASPECT_RATIOS:
            raise InvalidSource(f"Unknown aspect ratio: {self.aspect_ratio}")
        if self.template not in TEMPLATES:
            raise InvalidSource(f"Unknown template: {self.template}")
        if not MIN_WORDS_PER_CAPTION <= self.words_per_caption <= MAX_WORDS_PER_CAPTION:
            raise InvalidSource(
                f"words_per_caption must be between {MIN_WORDS_PER_CAPTION} "
                f"and {MAX_WORDS_PER_CAPTION}"
            )
        for bound in (self.clip_length_min_sec, self.clip_length_max_sec):
            if bound is not None and not (math.isfinite(bound) and bound > 0):
                raise InvalidSource("Custom clip length bounds must be positive")
        return self
    
    def to_dict(self) -> dict:
        return asdict(self)
    
    @classmethod
    def from_dict(cls, data: dict) -> "ClipOptions":
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        return cls(**known)


@dataclass
class SourceDescriptor:
    """A resolved source video: either an uploaded file or a downloaded URL."""
    type: Literal["file", "url"]
    path: Path
    url: Optional[str] = None
    title: Optional[str] = None
    platform: str = "file"
    
    def __post_init__(self):
        self.path = Path(self.path)
        if self.type == "url" and not self.url:
            raise InvalidSource("URL source requires a url")
        if self.title is None:
            self.title = self.path.name


@dataclass
class MediaInfo:
    """Probe result for a source video."""
    duration_sec: float
    width: int
    height: int
    fps: float
    bitrate: Optional[int] = None


@dataclass
class TranscriptSegment:
    """One time-aligned piece of transcript text, in absolute source seconds."""
    start: float
    end: float
    text: str
    
    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class Transcript:
    """Ordered, non-overlapping transcript segments."""
    segments: List[TranscriptSegment] = field(default_factory=list)
    language: Optional[str] = None
    
    def within(self, window: Window) -> "Transcript":
        """Segments overlapping ``window``, clipped to it."""
        clipped = [
            TranscriptSegment(
                start=max(seg.start, window.start),
                end=min(seg.end, window.end),
                text=seg.text,
            )
            for seg in self.segments
            if seg.start < window.end and seg.end > window.start
        ]
        return Transcript(segments=clipped, language=self.language)
    
    def normalized(self) -> "Transcript":
        """
        Sorted by start with overlaps trimmed and empty segments dropped.
        
        Providers are not trusted to return a clean sequence.
        """
        ordered = sorted(
            (s for s in self.segments if s.text.strip() and s.end > s.start),
            key=lambda s: (s.start, s.end),
        )
        result: List[TranscriptSegment] = []
        for seg in ordered:
            start = seg.start
            if result and start < result[-1].end:
                start = result[-1].end
            if seg.end <= start:
                continue
            result.append(TranscriptSegment(start=start, end=seg.end, text=seg.text.strip()))
        return Transcript(segments=result, language=self.language)


@dataclass
class Caption:
    """Caption text shown during ``[start_sec, end_sec]`` of a clip."""
    start_sec: float
    end_sec: float
    text: str
    keywords: Optional[List[str]] = None
    
    def to_dict(self) -> dict:
        data = {"startSec": self.start_sec, "endSec": self.end_sec, "text": self.text}
        if self.keywords is not None:
            data["keywords"] = list(self.keywords)
        return data


@dataclass(frozen=True)
class ClipScores:
    """Independent quality axes, each in [0, 1]."""
    engagement: float
    clarity: float
    hook: float
    
    def to_dict(self) -> dict:
        return {"engagement": self.engagement, "clarity": self.clarity, "hook": self.hook}


@dataclass
class ClipCandidate:
    """A clip produced by segmentation, before it is persisted."""
    id: str
    title: str
    start_sec: float
    end_sec: float
    aspect_ratio: str
    template: str
    has_captions: bool
    has_meme_hook: bool
    scores: ClipScores
    captions: List[Caption] = field(default_factory=list)
    thumbnail_candidates: List[float] = field(default_factory=list)
    
    @property
    def duration(self) -> float:
        return self.end_sec - self.start_sec
    
    def __repr__(self):
        return f"ClipCandidate({self.id}, {self.start_sec:.2f}-{self.end_sec:.2f})"
