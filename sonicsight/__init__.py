"""SonicSight: recognise calibrated household sounds in a live audio stream."""

from .errors import DecodeError, InvalidInputError, SonicSightError
from .features import extract_mfcc_frames
from .library import SoundLibrary
from .live_analyzer import LiveAnalyzer, LiveAnalyzerState
from .models import AudioChunk, CalibratedSound, DetectionEvent
from .sample_matcher import compare_signatures, find_best_match, find_best_match_from_buffer
from .settings import DetectionSettings, threshold_from_sensitivity
from .signature import (
    Signature,
    build_signature_from_frames,
    extract_signature,
    extract_signature_from_file,
)
from .sound_worker import SoundWorker

__version__ = "0.1.0"

__all__ = [
    "AudioChunk",
    "CalibratedSound",
    "DecodeError",
    "DetectionEvent",
    "DetectionSettings",
    "InvalidInputError",
    "LiveAnalyzer",
    "LiveAnalyzerState",
    "Signature",
    "SonicSightError",
    "SoundLibrary",
    "SoundWorker",
    "build_signature_from_frames",
    "compare_signatures",
    "extract_mfcc_frames",
    "extract_signature",
    "extract_signature_from_file",
    "find_best_match",
    "find_best_match_from_buffer",
    "threshold_from_sensitivity",
]
