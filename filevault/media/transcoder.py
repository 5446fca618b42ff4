"""
Video transcoding into HLS renditions.

Each eligible quality tier is encoded by its own ffmpeg process into
`<output_dir>/<tier>/index.m3u8` plus `segment_NNN.ts` files, and a master
playlist (`master.m3u8`) at the root references every tier playlist.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from filevault.core.errors import MediaProbeError, TranscodeError
from filevault.media.inspector import MAX_FRAME_RATE, MediaProbe
from filevault.media.process import CommandRunner, run_command
from filevault.media.workspace import ensure_dir

logger = logging.getLogger(__name__)

MASTER_PLAYLIST_NAME = "master.m3u8"
TIER_PLAYLIST_NAME = "index.m3u8"
SEGMENT_PATTERN = "segment_%03d.ts"
KEYFRAME_INTERVAL_SECONDS = 2


@dataclass(frozen=True)
class QualityTier:
    name: str
    target_width: int
    bitrate_kbps: int


# descending by target_width
QUALITY_TIERS: Tuple[QualityTier, ...] = (
    QualityTier("1080p", 1920, 5000),
    QualityTier("720p", 1280, 2800),
    QualityTier("480p", 854, 1400),
    QualityTier("360p", 640, 800),
)


@dataclass(frozen=True)
class RenditionTier:
    tier_name: str
    manifest_relative_path: str
    segments_dir: str
    width: int
    height: int
    bitrate_kbps: int

    @property
    def bandwidth(self) -> int:
        return self.bitrate_kbps * 1000

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class RenditionSet:
    root_dir: str
    master_manifest_path: str
    tiers: Tuple[RenditionTier, ...]


def _even(value: int) -> int:
    return max(2, value - value % 2)


def select_tiers(
    source_width: int,
    max_width: Optional[int] = 1920,
    tiers: Sequence[QualityTier] = QUALITY_TIERS,
) -> List[QualityTier]:
    """
    Picks the tiers to encode for a source of the given width. Never upscales.

    When the source is narrower than every tier, the smallest tier is kept and
    shrunk to the source width so at least one rendition is always produced.
    """
    if not tiers:
        raise ValueError("At least one quality tier is required")
    limit = min(source_width, max_width) if max_width else source_width

    eligible = [tier for tier in tiers if tier.target_width <= limit]
    if eligible:
        return sorted(eligible, key=lambda t: t.target_width, reverse=True)

    smallest = min(tiers, key=lambda t: t.target_width)
    return [QualityTier(smallest.name, _even(min(smallest.target_width, limit)), smallest.bitrate_kbps)]


def scaled_height(target_width: int, source_width: int, source_height: int) -> int:
    # floor(target_width / (source_width / source_height)), kept even for libx264
    return _even(target_width * source_height // source_width)


def build_master_playlist(tiers: Sequence[RenditionTier]) -> str:
    lines = ["#EXTM3U", "#EXT-X-VERSION:3"]
    for tier in tiers:
        lines.append(f"#EXT-X-STREAM-INF:BANDWIDTH={tier.bandwidth},RESOLUTION={tier.resolution}")
        lines.append(tier.manifest_relative_path)
    return "\n".join(lines) + "\n"


class RenditionTranscoder:
    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        timeout: Optional[float] = 1800,
        tiers: Sequence[QualityTier] = QUALITY_TIERS,
        runner: CommandRunner = run_command,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.timeout = timeout
        self.tiers = tuple(tiers)
        self.runner = runner

    async def transcode(
        self,
        local_path: str,
        probe: MediaProbe,
        output_dir: str,
        segment_duration_seconds: int = 10,
        max_width: int = 1920,
    ) -> RenditionSet:
        if not probe.is_video or not probe.width or not probe.height:
            raise MediaProbeError("Cannot transcode input without video dimensions")
        if segment_duration_seconds <= 0:
            raise ValueError("segment_duration_seconds must be positive")

        root = ensure_dir(output_dir)
        selected = select_tiers(probe.width, max_width, self.tiers)
        logger.info(
            "Transcoding %s (%sx%s) into tiers: %s",
            os.path.basename(local_path), probe.width, probe.height,
            ", ".join(t.name for t in selected),
        )

        tasks = [
            asyncio.ensure_future(
                self._transcode_tier(local_path, probe, root, tier, segment_duration_seconds)
            )
            for tier in selected
        ]
        try:
            renditions = await asyncio.gather(*tasks)
        except BaseException:
            # one tier failed (or we were cancelled): stop the others
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        master_path = os.path.join(root, MASTER_PLAYLIST_NAME)
        with open(master_path, "w", encoding="utf-8") as f:
            f.write(build_master_playlist(renditions))

        return RenditionSet(root_dir=root, master_manifest_path=master_path, tiers=tuple(renditions))

    async def _transcode_tier(
        self,
        local_path: str,
        probe: MediaProbe,
        root: str,
        tier: QualityTier,
        segment_duration: int,
    ) -> RenditionTier:
        width = tier.target_width
        height = scaled_height(width, probe.width, probe.height)
        tier_dir = ensure_dir(os.path.join(root, tier.name))
        playlist_path = os.path.join(tier_dir, TIER_PLAYLIST_NAME)

        command = self._build_command(local_path, probe, tier, width, height, segment_duration, tier_dir)
        context = {"tier": tier.name}
        try:
            result = await self.runner(command, self.timeout)
        except FileNotFoundError as e:
            raise TranscodeError("ffmpeg is not installed", context=context) from e
        except asyncio.TimeoutError as e:
            logger.error("Transcode timed out for tier %s", tier.name)
            raise TranscodeError("Transcoding timed out", context=context) from e

        if result.returncode != 0:
            logger.error("ffmpeg failed for tier %s: %s", tier.name, result.stderr_tail())
            raise TranscodeError(
                f"FFmpeg failed to transcode: {result.stderr_tail(3)}", context=context
            )
        if not os.path.isfile(playlist_path):
            raise TranscodeError("Transcoding produced no playlist", context=context)

        logger.info("Tier %s ready (%sx%s)", tier.name, width, height)
        return RenditionTier(
            tier_name=tier.name,
            manifest_relative_path=f"{tier.name}/{TIER_PLAYLIST_NAME}",
            segments_dir=tier_dir,
            width=width,
            height=height,
            bitrate_kbps=tier.bitrate_kbps,
        )

    def _build_command(
        self,
        local_path: str,
        probe: MediaProbe,
        tier: QualityTier,
        width: int,
        height: int,
        segment_duration: int,
        tier_dir: str,
    ) -> List[str]:
        fps = max(1, round(probe.frame_rate or MAX_FRAME_RATE))
        # keyframes must land on segment boundaries
        keyframe_seconds = KEYFRAME_INTERVAL_SECONDS if segment_duration % KEYFRAME_INTERVAL_SECONDS == 0 else 1
        gop = str(max(1, fps * keyframe_seconds))
        bitrate = tier.bitrate_kbps

        # -y           → overwrite output if exists
        # -sc_threshold 0 → no extra keyframes on scene cuts
        # -hls_playlist_type vod → complete playlist with ENDLIST
        return [
            self.ffmpeg_path,
            "-y",
            "-i", local_path,
            "-vf", f"scale={width}:{height}",
            "-r", str(fps),
            "-c:v", "libx264",
            "-preset", "veryfast",
            "-profile:v", "main",
            "-b:v", f"{bitrate}k",
            "-maxrate", f"{int(bitrate * 1.07)}k",
            "-bufsize", f"{int(bitrate * 1.5)}k",
            "-g", gop,
            "-keyint_min", gop,
            "-sc_threshold", "0",
            "-c:a", "aac",
            "-b:a", "128k",
            "-ac", "2",
            "-f", "hls",
            "-hls_time", str(segment_duration),
            "-hls_playlist_type", "vod",
            "-hls_segment_filename", os.path.join(tier_dir, SEGMENT_PATTERN),
            os.path.join(tier_dir, TIER_PLAYLIST_NAME),
        ]
