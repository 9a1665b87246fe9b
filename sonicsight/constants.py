"""Application-wide constants used for feature extraction and detection.

The values in this module configure the MFCC pipeline, the signature
matcher and the live analyzer.  Centralising the configuration avoids
magic numbers spread throughout the code base and makes it easy to tune
detection behaviour in one place.  The matcher constants were tuned
against this exact pipeline, so changing the pipeline usually means
re-tuning them as well.
"""

from __future__ import annotations

# ─── Audio configuration ────────────────────────────────────────────────────

# Sampling frequency used when nothing else is known about the input.
# Detection is tuned for 44.1–48 kHz sources.
SAMPLE_RATE: int = 44_100

# Analysis frame length and hop between frames (4:1 overlap).  The frame
# length must be a power of two for the radix-2 FFT.
FRAME_SIZE: int = 2048
HOP_SIZE: int = FRAME_SIZE // 4

# ─── MFCC configuration ─────────────────────────────────────────────────────

NUM_MFCC: int = 13
NUM_MEL_FILTERS: int = 26
MEL_MIN_FREQ: float = 0.0
# Ceiling of the mel filterbank.  8 kHz covers speech and the common
# household sounds (bells, beeps, alarms) without wasting filters on hiss.
MEL_MAX_FREQ: float = 8000.0

# Floor applied to mel energies before taking the log so silent frames
# never produce ``-inf``.
LOG_FLOOR: float = 1e-10

# ─── Matching defaults ──────────────────────────────────────────────────────

# Minimum frames on both sides before DTW is used instead of the
# aggregate comparator.
MIN_DTW_FRAMES: int = 3

# Gaussian kernel width mapping the average per-step DTW distance to a
# similarity.  Unit-normalised frames give distances of roughly 0.2 for
# similar sounds and 1.4 for unrelated ones.
DTW_SIGMA: float = 0.8

# Sakoe–Chiba band: 25 % of the longer sequence, never narrower than
# ``DTW_MIN_BAND`` frames.
DTW_BAND_FRACTION: float = 0.25
DTW_MIN_BAND: int = 10

# Frames whose centred norm falls below this are left unscaled.
NORM_EPSILON: float = 1e-8

# Aggregate comparator: kernel width and the epsilon added to the
# reference variance before inverse-variance weighting.
AGGREGATE_SIGMA: float = 2.0
VARIANCE_EPSILON: float = 0.5

# ─── Live analyzer defaults ─────────────────────────────────────────────────

# Rolling buffer cap (about four seconds at the default hop and rate).
MAX_BUFFER_FRAMES: int = 400

# No comparison is attempted until the buffer holds this many frames.
MIN_BUFFER_FRAMES: int = 20

# Per-sound requirements: the buffer must cover 40 % of the calibrated
# length (and at least eight frames) and the comparison window may be up
# to 1.3x the calibrated length.
MIN_WINDOW_FRAMES: int = 8
MIN_COVERAGE: float = 0.4
WINDOW_SLACK: float = 1.3

# Caller tunables.
ANALYSIS_INTERVAL_MS: int = 500
MATCH_THRESHOLD: float = 0.65
COOLDOWN_MS: int = 3000
SILENCE_GATE: float = 0.008

# The sensitivity control (0–100) maps linearly onto this threshold
# range; the highest sensitivity gives the lowest threshold.
SENSITIVITY_DEFAULT: int = 50
THRESHOLD_MIN: float = 0.50
THRESHOLD_MAX: float = 0.80

# ─── Capture defaults ───────────────────────────────────────────────────────

# Samples handed to the analyzer on each tick (~0.7 s at 48 kHz).
CHUNK_SIZE: int = 32_768

# Longest calibration recording accepted from the microphone.
MAX_RECORDING_SECONDS: float = 10.0

# RMS level below which a calibration recording is considered silent.
RECORDING_SILENCE_THRESHOLD: float = 0.01

# Multiplier applied to the estimated noise floor when trimming silence.
NOISE_GATE_MARGIN: float = 1.5

__all__ = [
    "SAMPLE_RATE",
    "FRAME_SIZE",
    "HOP_SIZE",
    "NUM_MFCC",
    "NUM_MEL_FILTERS",
    "MEL_MIN_FREQ",
    "MEL_MAX_FREQ",
    "LOG_FLOOR",
    "MIN_DTW_FRAMES",
    "DTW_SIGMA",
    "DTW_BAND_FRACTION",
    "DTW_MIN_BAND",
    "NORM_EPSILON",
    "AGGREGATE_SIGMA",
    "VARIANCE_EPSILON",
    "MAX_BUFFER_FRAMES",
    "MIN_BUFFER_FRAMES",
    "MIN_WINDOW_FRAMES",
    "MIN_COVERAGE",
    "WINDOW_SLACK",
    "ANALYSIS_INTERVAL_MS",
    "MATCH_THRESHOLD",
    "COOLDOWN_MS",
    "SILENCE_GATE",
    "SENSITIVITY_DEFAULT",
    "THRESHOLD_MIN",
    "THRESHOLD_MAX",
    "CHUNK_SIZE",
    "MAX_RECORDING_SECONDS",
    "RECORDING_SILENCE_THRESHOLD",
    "NOISE_GATE_MARGIN",
]
