"""Tests for ffmpeg command and probe helpers."""
import pytest

from clippilot.utils.ffmpeg import (
    QUALITY_BITRATES,
    FFmpegError,
    build_aspect_filter,
    build_render_command,
    parse_frame_rate,
    parse_probe_output,
)


def test_vertical_filter_targets_1080x1920():
    video_filter = build_aspect_filter("9:16")
    assert "scale=1080:1920:force_original_aspect_ratio=increase" in video_filter
    assert "crop=1080:1920" in video_filter


def test_square_and_landscape_filters():
    assert "crop=1080:1080" in build_aspect_filter("1:1")
    assert "crop=1920:1080" in build_aspect_filter("16:9")


def test_auto_has_no_filter():
    assert build_aspect_filter("auto") is None


def test_quality_bitrates():
    assert QUALITY_BITRATES["low"] == ("1M", "64k")
    assert QUALITY_BITRATES["medium"] == ("2.5M", "128k")
    assert QUALITY_BITRATES["high"] == ("5M", "192k")


def test_render_command_trims_and_encodes():
    cmd = build_render_command("in.mp4", "out.mp4", 12.5, 37.5, "9:16", "high")

    assert cmd[cmd.index("-ss") + 1] == "12.500"
    assert cmd[cmd.index("-t") + 1] == "25.000"
    assert "crop=1080:1920" in cmd[cmd.index("-vf") + 1]
    assert cmd[cmd.index("-b:v") + 1] == "5M"
    assert cmd[cmd.index("-b:a") + 1] == "192k"
    assert "+faststart" in cmd
    assert cmd[-1] == "out.mp4"


def test_render_command_auto_keeps_frame():
    cmd = build_render_command("in.mp4", "out.mp4", 0, 10, "auto", "low")
    assert "-vf" not in cmd


@pytest.mark.parametrize("value,expected", [("30/1", 30.0), ("30000/1001", 29.97), ("25", 25.0), (None, 30.0)])
def test_parse_frame_rate(value, expected):
    assert parse_frame_rate(value) == pytest.approx(expected, abs=0.01)


def test_parse_probe_output():
    info = parse_probe_output({
        "streams": [
            {"codec_type": "audio", "codec_name": "aac"},
            {"codec_type": "video", "codec_name": "h264", "width": 1920, "height": 1080, "r_frame_rate": "30/1"},
        ],
        "format": {"duration": "125.4", "format_name": "mov,mp4", "bit_rate": "4000000"},
    })

    assert info.duration == pytest.approx(125.4)
    assert (info.width, info.height) == (1920, 1080)
    assert info.video_codec == "h264"
    assert info.audio_codec == "aac"
    assert info.bit_rate == 4_000_000


def test_parse_probe_output_falls_back_to_stream_duration():
    info = parse_probe_output({
        "streams": [{"codec_type": "video", "width": 640, "height": 360, "duration": "9.5"}],
        "format": {},
    })
    assert info.duration == pytest.approx(9.5)


def test_parse_probe_output_without_video():
    with pytest.raises(FFmpegError):
        parse_probe_output({"streams": [{"codec_type": "audio"}], "format": {"duration": "10"}})
