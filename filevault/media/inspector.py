"""
Media inspection: classify a local file and, for video, read its dimensions,
duration and frame rate with ffprobe.
"""

import asyncio
import contextlib
import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from filevault.core.errors import MediaProbeError
from filevault.media.process import CommandRunner, run_command

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset({".mp4", ".avi", ".mov", ".wmv", ".flv", ".mkv", ".webm"})
MAX_FRAME_RATE = 30.0


@dataclass(frozen=True)
class MediaProbe:
    is_video: bool
    width: Optional[int] = None
    height: Optional[int] = None
    duration_seconds: Optional[float] = None
    frame_rate: Optional[float] = None


def is_video_path(path: str) -> bool:
    _, ext = os.path.splitext(path or "")
    return ext.lower() in VIDEO_EXTENSIONS


def parse_frame_rate(value: Any, cap: float = MAX_FRAME_RATE) -> Optional[float]:
    """
    Parses an ffprobe frame rate such as "30000/1001", "25/1" or "24".

    Returns None for anything unparsable or non-positive; otherwise the rate
    clamped to `cap`.
    """
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None

    try:
        if "/" in text:
            num, den = text.split("/", 1)
            numerator = float(num)
            denominator = float(den)
            if denominator == 0:
                return None
            rate = numerator / denominator
        else:
            rate = float(text)
    except ValueError:
        return None

    if rate != rate or rate <= 0:  # NaN or non-positive
        return None
    return min(rate, cap)


class MediaInspector:
    def __init__(
        self,
        ffprobe_path: str = "ffprobe",
        timeout: float = 60,
        runner: CommandRunner = run_command,
    ):
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout
        self.runner = runner

    async def probe(self, local_path: str) -> MediaProbe:
        if not is_video_path(local_path):
            return MediaProbe(is_video=False)

        data = await self._run_ffprobe(local_path)
        stream = self._first_video_stream(data)
        if stream is None:
            raise MediaProbeError(
                "No decodable video stream found", context={"path": os.path.basename(local_path)}
            )

        width = self._to_int(stream.get("width"))
        height = self._to_int(stream.get("height"))
        if not width or not height:
            raise MediaProbeError(
                "Video stream has no resolution", context={"path": os.path.basename(local_path)}
            )

        duration = self._to_float(stream.get("duration"))
        if duration is None:
            duration = self._to_float(data.get("format", {}).get("duration"))

        frame_rate = parse_frame_rate(stream.get("avg_frame_rate"))
        if frame_rate is None:
            frame_rate = parse_frame_rate(stream.get("r_frame_rate"))

        probe = MediaProbe(
            is_video=True,
            width=width,
            height=height,
            duration_seconds=duration,
            frame_rate=frame_rate,
        )
        logger.info(
            "Probed %s: %sx%s, %ss @ %s fps",
            os.path.basename(local_path), width, height, duration, frame_rate,
        )
        return probe

    async def _run_ffprobe(self, local_path: str) -> Dict[str, Any]:
        command = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            local_path,
        ]
        context = {"path": os.path.basename(local_path)}
        try:
            result = await self.runner(command, self.timeout)
        except FileNotFoundError as e:
            raise MediaProbeError("ffprobe is not installed", status_code=500, context=context) from e
        except asyncio.TimeoutError as e:
            raise MediaProbeError("Timed out while probing media", context=context) from e

        if result.returncode != 0 or not result.stdout:
            raise MediaProbeError("Could not read media file", context=context)

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise MediaProbeError("Could not parse probe output", context=context) from e
        if not isinstance(data, dict):
            raise MediaProbeError("Could not parse probe output", context=context)
        return data

    @staticmethod
    def _first_video_stream(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for stream in data.get("streams") or []:
            # cover art shows up as a video stream with attached_pic set
            if stream.get("codec_type") != "video":
                continue
            if (stream.get("disposition") or {}).get("attached_pic"):
                continue
            return stream
        return None

    @staticmethod
    def _to_int(value: Any) -> Optional[int]:
        with contextlib.suppress(ValueError, TypeError):
            return int(value)
        return None

    @staticmethod
    def _to_float(value: Any) -> Optional[float]:
        with contextlib.suppress(ValueError, TypeError):
            return float(value)
        return None
