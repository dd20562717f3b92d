"""FFmpeg service for image and video processing."""

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from transform_engine.core.config import settings
from transform_engine.core.errors import FFmpegError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Seconds per operation type
TIMEOUTS = {
    "image_scale": 30,
    "thumbnail": 15,
    "overlay": 45,
    "probe": 15,
    "gif_small": 45,  # fewer than 5 frames
    "gif_large": 90,
}

MAX_INPUT_BYTES = 200 * 1024 * 1024

# Output pixel sizes per aspect ratio
ASPECT_RATIO_DIMENSIONS: Dict[str, Tuple[int, int]] = {
    "1:1": (1024, 1024),
    "3:2": (1536, 1024),
    "2:3": (1024, 1536),
    "4:5": (1024, 1280),
    "5:4": (1280, 1024),
    "16:9": (1792, 1024),
    "9:16": (1024, 1792),
}


@dataclass
class MediaInfo:
    """Probed media properties."""
    width: int
    height: int
    duration: Optional[float] = None
    codec: Optional[str] = None


def dimensions_for_aspect_ratio(aspect_ratio: str) -> Tuple[int, int]:
    """Target pixel size for an aspect ratio like "9:16"."""
    if aspect_ratio in ASPECT_RATIO_DIMENSIONS:
        return ASPECT_RATIO_DIMENSIONS[aspect_ratio]

    match = re.fullmatch(r"\s*(\d+)\s*:\s*(\d+)\s*", aspect_ratio or "")
    if not match or int(match.group(1)) == 0 or int(match.group(2)) == 0:
        raise FFmpegError(f"Invalid aspect ratio: {aspect_ratio!r}", "validation")

    w, h = int(match.group(1)), int(match.group(2))
    # Long side 1024, even dimensions
    if w >= h:
        return 1024, max(2, round(1024 * h / w / 2) * 2)
    return max(2, round(1024 * w / h / 2) * 2), 1024


def categorize_ffmpeg_error(stderr: str) -> str:
    """Categorize an ffmpeg failure from its stderr."""
    text = stderr.lower()

    if "invalid data" in text or "no such file" in text or "does not exist" in text:
        return "validation"
    if "unknown encoder" in text or "encoder not found" in text or "codec not currently supported" in text:
        return "codec"
    if "permission denied" in text or "no space left" in text or "read only" in text:
        return "filesystem"
    if "cannot allocate memory" in text or "out of memory" in text:
        return "memory"
    return "unknown"


def validate_input_file(file_path: PathLike) -> None:
    """Input must exist, be non-empty and within the size cap."""
    path = Path(file_path)
    if not path.exists():
        raise FFmpegError("Input file not found", "validation", {"file_path": str(path)})

    size = path.stat().st_size
    if size == 0:
        raise FFmpegError("Input file is empty", "validation", {"file_path": str(path)})
    if size > MAX_INPUT_BYTES:
        raise FFmpegError(
            "Input file exceeds maximum size",
            "validation",
            {"file_path": str(path), "size": size, "max_size": MAX_INPUT_BYTES},
        )


def _validate_output_file(output_path: PathLike, description: str) -> None:
    path = Path(output_path)
    if not path.exists() or path.stat().st_size == 0:
        raise FFmpegError(f"{description} produced empty output", "unknown", {"output_path": str(path)})


class FFmpegService:
    """Service for FFmpeg operations."""

    _instance: Optional["FFmpegService"] = None

    def __init__(self, ffmpeg_path: Optional[str] = None, ffprobe_path: Optional[str] = None):
        self.ffmpeg_path = ffmpeg_path or settings.FFMPEG_PATH
        self.ffprobe_path = ffprobe_path or settings.FFPROBE_PATH
        self.version: Optional[str] = None
        self._initialized = False

    @classmethod
    def get_instance(cls) -> "FFmpegService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    async def check_availability(self) -> bool:
        """Check if FFmpeg is available and record its version."""
        if self._initialized:
            return self.version is not None

        try:
            stdout, _ = await self._run([self.ffmpeg_path, "-version"], timeout=10, description="FFmpeg version check")
        except (FFmpegError, OSError) as e:
            logger.error("FFmpeg check failed: %s", e)
            return False

        match = re.search(r"ffmpeg version (\S+)", stdout)
        self.version = match.group(1) if match else "unknown"
        self._initialized = True
        logger.info("FFmpeg %s available", self.version)
        return True

    async def _run(
        self,
        cmd: List[str],
        timeout: float,
        description: str,
    ) -> Tuple[str, str]:
        """Run a subprocess; raise FFmpegError on timeout or non-zero exit."""
        logger.debug("Running %s: %s", description, " ".join(cmd[:6]) + "...")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise FFmpegError(f"{description} could not start: {e}", "unknown", {"command": cmd[0]}) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.error("%s timed out after %ss, killing process", description, timeout)
            await self._kill(proc)
            raise FFmpegError(f"{description} timed out after {timeout}s", "timeout", {"timeout": timeout})
        except asyncio.CancelledError:
            # The job was cancelled; its temp dir is about to be removed
            logger.warning("%s cancelled, killing process", description)
            await self._kill(proc)
            raise

        out = stdout.decode(errors="replace")
        err = stderr.decode(errors="replace")

        if proc.returncode != 0:
            error_type = categorize_ffmpeg_error(err)
            logger.error("%s failed with exit code %d (%s)", description, proc.returncode, error_type)
            raise FFmpegError(
                f"{description} failed with exit code {proc.returncode}",
                error_type,
                {"exit_code": proc.returncode, "stderr": err[-4000:], "stdout": out[-1000:]},
            )

        return out, err

    @staticmethod
    async def _kill(proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()

    async def probe_dimensions_and_duration(self, input_path: PathLike) -> MediaInfo:
        """Get pixel size and (for video) duration using ffprobe."""
        validate_input_file(input_path)

        stdout, _ = await self._run(
            [
                self.ffprobe_path,
                "-v", "error",
                "-print_format", "json",
                "-show_format",
                "-show_streams",
                str(input_path),
            ],
            timeout=TIMEOUTS["probe"],
            description="Media probe",
        )

        try:
            probe_data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise FFmpegError("Media probe returned invalid JSON", "unknown", {"stdout": stdout[:500]}) from e

        return self.parse_probe(probe_data)

    @staticmethod
    def parse_probe(probe_data: Dict[str, Any]) -> MediaInfo:
        """Extract the first video stream's size and the container duration."""
        video_stream = None
        for stream in probe_data.get("streams", []):
            if stream.get("codec_type") == "video":
                video_stream = stream
                break

        if not video_stream or not video_stream.get("width") or not video_stream.get("height"):
            raise FFmpegError("No video stream found", "validation")

        duration: Optional[float] = None
        raw_duration = probe_data.get("format", {}).get("duration") or video_stream.get("duration")
        if raw_duration not in (None, "N/A"):
            try:
                duration = float(raw_duration)
            except (TypeError, ValueError):
                duration = None

        return MediaInfo(
            width=int(video_stream["width"]),
            height=int(video_stream["height"]),
            duration=duration,
            codec=video_stream.get("codec_name"),
        )

    async def scale_and_crop(
        self,
        input_path: PathLike,
        output_path: PathLike,
        aspect_ratio: str,
    ) -> Tuple[int, int]:
        """Resize with Lanczos and center-crop to the exact size for the aspect ratio."""
        validate_input_file(input_path)
        width, height = dimensions_for_aspect_ratio(aspect_ratio)

        cmd = [
            self.ffmpeg_path,
            "-y",
            "-i", str(input_path),
            "-vf",
            f"scale={width}:{height}:flags=lanczos:force_original_aspect_ratio=increase,"
            f"crop={width}:{height}:(iw-{width})/2:(ih-{height})/2",
            "-q:v", "2",
            str(output_path),
        ]
        await self._run(cmd, timeout=TIMEOUTS["image_scale"], description="Image scaling")
        _validate_output_file(output_path, "Image scaling")
        return width, height

    async def encode_animated_image(
        self,
        frame_paths: Sequence[PathLike],
        output_path: PathLike,
        width: int = 640,
        fps: int = 2,
    ) -> None:
        """Encode an ordered frame sequence as a looping GIF.

        Two passes over a concat list: ``palettegen`` builds a 256 color palette
        from all frames, then ``paletteuse`` encodes with Bayer dithering.
        Frames may repeat (boomerang) without being copied on disk.
        """
        if not frame_paths:
            raise FFmpegError("No frames provided for animated image", "validation", {"frame_count": 0})

        for path in {str(p) for p in frame_paths}:
            validate_input_file(path)

        work_dir = Path(output_path).parent
        concat_path = work_dir / f"{Path(output_path).stem}-concat.txt"
        palette_path = work_dir / f"{Path(output_path).stem}-palette.png"

        frame_duration = 1 / fps
        lines = []
        for path in frame_paths:
            lines.append(f"file '{Path(path).resolve().as_posix()}'")
            lines.append(f"duration {frame_duration}")
        # The concat demuxer ignores the last duration unless the file is repeated
        lines.append(f"file '{Path(frame_paths[-1]).resolve().as_posix()}'")
        concat_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        timeout = TIMEOUTS["gif_small"] if len(frame_paths) < 5 else TIMEOUTS["gif_large"]

        try:
            await self._run(
                [
                    self.ffmpeg_path,
                    "-y",
                    "-f", "concat",
                    "-safe", "0",
                    "-i", str(concat_path),
                    "-vf", f"scale={width}:-1:flags=lanczos,palettegen=stats_mode=diff:max_colors=256",
                    "-frames:v", "1",
                    str(palette_path),
                ],
                timeout=timeout,
                description="GIF palette generation",
            )
            _validate_output_file(palette_path, "GIF palette generation")

            await self._run(
                [
                    self.ffmpeg_path,
                    "-y",
                    "-f", "concat",
                    "-safe", "0",
                    "-i", str(concat_path),
                    "-i", str(palette_path),
                    "-filter_complex",
                    f"scale={width}:-1:flags=lanczos[x];[x][1:v]paletteuse=dither=bayer:bayer_scale=5:diff_mode=rectangle",
                    "-loop", "0",
                    str(output_path),
                ],
                timeout=timeout,
                description="GIF encoding",
            )
            _validate_output_file(output_path, "GIF encoding")
        finally:
            for path in (concat_path, palette_path):
                try:
                    path.unlink(missing_ok=True)
                except OSError as e:
                    logger.warning("Failed to remove %s: %s", path, e)

    async def generate_thumbnail(
        self,
        input_path: PathLike,
        output_path: PathLike,
        width: int = 300,
    ) -> None:
        """Scale the first frame of an image, GIF or video to a JPEG thumbnail."""
        validate_input_file(input_path)

        cmd = [
            self.ffmpeg_path,
            "-y",
            "-i", str(input_path),
            "-vf", f"scale={width}:-2:flags=lanczos",
            "-frames:v", "1",
            "-q:v", "2",
            str(output_path),
        ]
        await self._run(cmd, timeout=TIMEOUTS["thumbnail"], description="Thumbnail generation")
        _validate_output_file(output_path, "Thumbnail generation")

    async def apply_overlay(
        self,
        input_path: PathLike,
        overlay_path: PathLike,
        output_path: PathLike,
    ) -> None:
        """Composite a full-frame overlay image on top of the input at (0,0)."""
        validate_input_file(input_path)
        validate_input_file(overlay_path)

        cmd = [
            self.ffmpeg_path,
            "-y",
            "-i", str(input_path),
            "-i", str(overlay_path),
            "-filter_complex", "[1:v][0:v]scale=rw:rh[ov];[0:v][ov]overlay=0:0",
            "-q:v", "2",
            str(output_path),
        ]
        await self._run(cmd, timeout=TIMEOUTS["overlay"], description="Overlay composition")
        _validate_output_file(output_path, "Overlay composition")
