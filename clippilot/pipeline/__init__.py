"""Clip production pipeline.

Stages, leaf first:
- media: probing and audio extraction around ffprobe/ffmpeg
- transcription: pluggable transcript providers
- segmentation + scoring: transcript to ordered, non-overlapping clip candidates
- renderer: lazy, per-clip deduplicated encoding
- orchestrator: the per-job state machine
"""
