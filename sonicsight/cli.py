#!/usr/bin/env python3
"""
SonicSight command line.

Usage:
    sonicsight calibrate "Door bell" --file doorbell.wav --color "#f59e0b"
    sonicsight calibrate "Kettle" --record --trim
    sonicsight compare live.wav reference.wav
    sonicsight list
    sonicsight listen --sensitivity 60
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from appdirs import user_data_dir

from .constants import CHUNK_SIZE, SAMPLE_RATE, SENSITIVITY_DEFAULT
from .errors import SonicSightError
from .library import DEFAULT_COLOR, SoundLibrary
from .live_analyzer import LiveAnalyzer
from .models import DetectionEvent
from .noise_gate import trim_silence
from .sample_matcher import compare_signatures
from .settings import DetectionSettings
from .signature import decode_audio, extract_signature, extract_signature_from_file

logger = logging.getLogger("sonicsight")

DATA_DIR = Path(user_data_dir("sonicsight", "sonicsight"))
DEFAULT_LIBRARY = DATA_DIR / "sounds.json"


def _calibrate(args: argparse.Namespace) -> int:
    library = SoundLibrary(args.library).load()
    if args.file:
        samples, sample_rate = decode_audio(args.file)
    else:
        from .streams import record_until_silence

        print(f"Recording '{args.name}'... make the sound now.")
        sample_rate = args.sample_rate
        samples = record_until_silence(args.device, sample_rate=sample_rate)
    if args.trim:
        samples = trim_silence(samples)
    signature = extract_signature(samples, sample_rate)
    if signature.frame_count < 3:
        logger.warning("recording only produced %d frame(s); matching will be coarse", signature.frame_count)
    sound = library.add(args.name, signature, color=args.color)
    library.save()
    print(f"Calibrated {sound.name} as {sound.id} ({signature.frame_count} frames)")
    return 0


def _compare(args: argparse.Namespace) -> int:
    live = extract_signature_from_file(args.live)
    reference = extract_signature_from_file(args.reference)
    print(f"{compare_signatures(live, reference):.3f}")
    return 0


def _list(args: argparse.Namespace) -> int:
    library = SoundLibrary(args.library).load()
    if not len(library):
        print("No sounds calibrated yet.")
    for sound in library:
        frames = sound.signature.frame_count if sound.signature is not None else 0
        status = f"{frames} frames" if sound.signature is not None else "not calibrated"
        print(f"{sound.id:24} {sound.name:24} {sound.color:9} {status}")
    return 0


def _print_detection(event: DetectionEvent) -> None:
    stamp = time.strftime("%H:%M:%S", time.localtime(event.timestamp / 1000))
    print(f"[{stamp}] {event.name} detected (score {event.score:.2f})", flush=True)


def _listen(args: argparse.Namespace) -> int:
    from .sound_worker import SoundWorker
    from .streams import MicrophoneSource

    library = SoundLibrary(args.library).load()
    sounds = library.calibrated()
    if not sounds:
        print("No calibrated sounds; run 'sonicsight calibrate' first.")
        return 1

    if args.threshold is not None:
        settings = DetectionSettings(
            analysis_interval_ms=args.interval,
            threshold=args.threshold,
            cooldown_ms=args.cooldown,
            silence_gate=args.silence_gate,
        )
    else:
        settings = DetectionSettings.from_sensitivity(
            args.sensitivity,
            analysis_interval_ms=args.interval,
            cooldown_ms=args.cooldown,
            silence_gate=args.silence_gate,
        )
    analyzer = LiveAnalyzer(sounds, settings=settings)
    source = MicrophoneSource(args.device, sample_rate=args.sample_rate, chunk_size=CHUNK_SIZE)
    worker = SoundWorker(analyzer, source, on_detection=_print_detection)

    print(f"Listening for {len(sounds)} sound(s) (threshold {settings.threshold:.2f})... Ctrl+C to quit")
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.5)
    except KeyboardInterrupt:
        print("\nExiting.")
    finally:
        worker.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sonicsight", description="SonicSight - household sound detection")
    parser.add_argument("--library", type=Path, default=DEFAULT_LIBRARY,
                        help=f"Sound library JSON file (default: {DEFAULT_LIBRARY})")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    cal = sub.add_parser("calibrate", help="Calibrate a new sound")
    cal.add_argument("name", help="Display name of the sound")
    src = cal.add_mutually_exclusive_group(required=True)
    src.add_argument("--file", "-f", type=Path, help="Recording to calibrate from")
    src.add_argument("--record", action="store_true", help="Record from the microphone")
    cal.add_argument("--color", default=DEFAULT_COLOR, help="Display colour")
    cal.add_argument("--trim", action="store_true", help="Trim leading/trailing silence")
    cal.add_argument("--device", type=int, default=None, help="Input device index")
    cal.add_argument("--sample-rate", type=int, default=SAMPLE_RATE)
    cal.set_defaults(func=_calibrate)

    cmp_ = sub.add_parser("compare", help="Score a recording against a reference")
    cmp_.add_argument("live", type=Path)
    cmp_.add_argument("reference", type=Path)
    cmp_.set_defaults(func=_compare)

    lst = sub.add_parser("list", help="List calibrated sounds")
    lst.set_defaults(func=_list)

    lis = sub.add_parser("listen", help="Listen to the microphone and report detections")
    lis.add_argument("--device", type=int, default=None, help="Input device index")
    lis.add_argument("--sample-rate", type=int, default=SAMPLE_RATE)
    lis.add_argument("--sensitivity", type=float, default=SENSITIVITY_DEFAULT,
                     help="0 (strict) to 100 (permissive)")
    lis.add_argument("--threshold", type=float, default=None,
                     help="Explicit match threshold; overrides --sensitivity")
    lis.add_argument("--interval", type=int, default=DetectionSettings.analysis_interval_ms,
                     help="Analysis interval in ms")
    lis.add_argument("--cooldown", type=int, default=DetectionSettings.cooldown_ms,
                     help="Cooldown per sound in ms")
    lis.add_argument("--silence-gate", type=float, default=DetectionSettings.silence_gate,
                     help="RMS level below which audio is ignored")
    lis.set_defaults(func=_listen)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return args.func(args)
    except (SonicSightError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
