"""Tests for media classification and ffprobe parsing."""

import pytest

from filevault.core.errors import MediaProbeError
from filevault.media.inspector import MediaInspector, is_video_path, parse_frame_rate
from fakes import FakeFFprobe, ffprobe_output


class TestClassification:
    @pytest.mark.parametrize("name", ["a.mp4", "b.MOV", "c.mkv", "d.webm", "e.avi", "f.wmv", "g.flv"])
    def test_video_extensions(self, name):
        assert is_video_path(name)

    @pytest.mark.parametrize("name", ["a.png", "b.pdf", "c.txt", "noext", ""])
    def test_everything_else_is_not_video(self, name):
        assert not is_video_path(name)


class TestParseFrameRate:
    def test_ntsc_rational(self):
        assert parse_frame_rate("30000/1001") == pytest.approx(29.97, rel=1e-3)

    def test_clamped_to_thirty(self):
        assert parse_frame_rate("60/1") == 30.0

    def test_plain_number(self):
        assert parse_frame_rate("24") == 24.0

    @pytest.mark.parametrize("value", [None, "", "0/0", "0/1", "abc", "__import__('os')", "1/0", "-25/1"])
    def test_invalid_values(self, value):
        assert parse_frame_rate(value) is None


class TestProbe:
    async def test_non_video_skips_ffprobe(self):
        runner = FakeFFprobe()
        probe = await MediaInspector(runner=runner).probe("/tmp/report.pdf")
        assert probe.is_video is False
        assert probe.width is None
        assert runner.commands == []

    async def test_video_metadata(self):
        runner = FakeFFprobe(ffprobe_output(1280, 720, "42.0", "25/1"))
        probe = await MediaInspector(ffprobe_path="/usr/bin/ffprobe", runner=runner).probe("/tmp/clip.mp4")

        assert probe.is_video
        assert (probe.width, probe.height) == (1280, 720)
        assert probe.duration_seconds == 42.0
        assert probe.frame_rate == 25.0
        assert runner.commands[0][0] == "/usr/bin/ffprobe"
        assert runner.commands[0][-1] == "/tmp/clip.mp4"

    async def test_no_video_stream(self):
        runner = FakeFFprobe(ffprobe_output(codec_type="subtitle"))
        with pytest.raises(MediaProbeError):
            await MediaInspector(runner=runner).probe("/tmp/clip.mp4")

    async def test_missing_dimensions(self):
        runner = FakeFFprobe(ffprobe_output(width=None, height=None))
        with pytest.raises(MediaProbeError):
            await MediaInspector(runner=runner).probe("/tmp/clip.mp4")

    async def test_ffprobe_failure(self):
        runner = FakeFFprobe(stdout="", returncode=1)
        with pytest.raises(MediaProbeError) as exc_info:
            await MediaInspector(runner=runner).probe("/tmp/broken.mov")
        assert exc_info.value.status_code == 400

    async def test_garbage_output(self):
        runner = FakeFFprobe(stdout="not json")
        with pytest.raises(MediaProbeError):
            await MediaInspector(runner=runner).probe("/tmp/broken.mov")
