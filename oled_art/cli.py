#!/usr/bin/env python3
"""
Video -> OLED Arduino sketch converter

- Samples up to --max-frames frames (or exactly --frames) at up to --fps
- Stretches each frame to the display size, rotating 90° for --orientation vertical
- Thresholds luma to 1 bit and packs rows LSB-first (drawXBitmap / drawXBMP order)
- Writes a ready-to-flash .ino for Adafruit SSD1306, Adafruit SSD1331 or U8g2
- Optional --preview writes an animated GIF of what the display will show

Usage examples:
    oled-art-convert clip.mp4 -o clip.ino --display-size 128x64 --frames 20
    oled-art-convert clip.mp4 --library u8g2 --orientation vertical --preview clip.gif
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .code_generator import (
    CodeGenerationError,
    Library,
    generate_arduino_code,
    program_filename,
)
from .config import DISPLAY_SIZES, CUSTOM_DISPLAY_SIZE, PipelineConfig
from .main import configure_logging
from .preview import PreviewRenderer
from .processor import VideoProcessingError, VideoProcessor
from .validation import ValidationError

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    defaults = PipelineConfig()
    ap = argparse.ArgumentParser(
        description="Convert a short video into an Arduino sketch for a small OLED display."
    )
    ap.add_argument("video", help="Input video path")
    ap.add_argument("-o", "--output", help="Output .ino path (default: video_to_oled_<name>.ino)")
    ap.add_argument(
        "--display-size",
        default="128x64",
        help=f"Preset ({', '.join([*DISPLAY_SIZES, CUSTOM_DISPLAY_SIZE])}) or WxH",
    )
    ap.add_argument("--orientation", choices=["horizontal", "vertical"], default="horizontal")
    ap.add_argument(
        "--library",
        choices=[lib.value for lib in Library],
        default=Library.ADAFRUIT_GFX_SSD1306.value,
    )
    ap.add_argument("--fps", type=float, default=defaults.target_fps, help="Target FPS (clamped to 1-30)")
    ap.add_argument("--frames", type=int, default=None, help="Exact number of frames to extract")
    ap.add_argument("--max-frames", type=int, default=defaults.max_frames)
    ap.add_argument("--threshold", type=int, default=defaults.threshold, help="Luma threshold 0-255")
    ap.add_argument("--max-duration", type=float, default=defaults.max_duration, help="Seconds of video to use")
    ap.add_argument("--preview", help="Write an animated GIF preview to this path")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return ap


async def convert(args: argparse.Namespace) -> Path:
    pipeline = PipelineConfig(
        max_duration=args.max_duration,
        max_frames=args.max_frames,
        target_fps=args.fps,
        threshold=args.threshold,
    )
    opts = pipeline.options(
        display_size=args.display_size,
        orientation=args.orientation,
        target_frames=args.frames,
    )

    result = await VideoProcessor(pipeline).process_video(args.video, opts)
    code = generate_arduino_code(
        result.frames_packed, result.width, result.height, result.fps, args.library
    )

    out = Path(args.output) if args.output else Path(program_filename(Path(args.video).stem))
    out.write_text(code, encoding="utf-8")
    logger.info(
        f"Wrote {out} ({result.frame_count} frames @ {result.fps:.2f}fps, "
        f"{result.width}x{result.height}, {result.frame_count * result.bytes_per_frame} bytes)"
    )

    if args.preview:
        renderer = PreviewRenderer(
            result.frames_mono, result.width, result.height, pipeline.preview_cache_size
        )
        renderer.save_gif(args.preview, result.fps)
    return out


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    try:
        out = asyncio.run(convert(args))
    except (VideoProcessingError, CodeGenerationError, ValidationError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(out)
    return 0


if __name__ == "__main__":
    sys.exit(main())
