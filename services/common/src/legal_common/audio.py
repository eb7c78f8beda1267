"""
Audio framing for live deposition streaming.

Microphone input arrives as float samples in [-1.0, 1.0). The relay expects
fixed-size frames of little-endian signed 16-bit PCM, mono, 16 kHz:
4000 samples (250 ms, 8000 bytes) per frame.
"""

import base64

import numpy as np

SAMPLE_RATE = 16000
FRAME_SAMPLES = 4000
BYTES_PER_SAMPLE = 2
FRAME_BYTES = FRAME_SAMPLES * BYTES_PER_SAMPLE

INT16_MIN = -32768
INT16_MAX = 32767
_PCM16_SCALE = 32768.0


def float_to_pcm16(samples: np.ndarray) -> np.ndarray:
    """
    Converts float samples to int16, clipping out-of-range values.

    Values below -1.0 map to -32768 and values at or above 1.0 map to 32767;
    nothing wraps around. NaN samples become silence.
    """
    values = np.nan_to_num(
        np.asarray(samples, dtype=np.float64), nan=0.0, posinf=1.0, neginf=-1.0
    )
    scaled = np.round(values * _PCM16_SCALE)
    return np.clip(scaled, INT16_MIN, INT16_MAX).astype(np.int16)


def encode_frame(frame: bytes) -> str:
    """Base64-encodes a PCM frame for the transport."""
    return base64.b64encode(frame).decode("ascii")


def frame_duration_ms(num_bytes: int) -> float:
    """Duration in milliseconds of a 16 kHz 16-bit mono byte count."""
    if num_bytes <= 0:
        return 0.0
    return (num_bytes / (SAMPLE_RATE * BYTES_PER_SAMPLE)) * 1000.0


class AudioFramer:
    """
    Buffers float samples and emits whole PCM16 frames.

    - Accepts blocks of any size (sound cards deliver 10-100 ms blocks).
    - Emits a frame each time `frame_samples` samples are buffered; samples
      past the frame boundary are kept for the next frame.
    - Never emits a partial frame: the tail left when capture stops is dropped.
    """

    def __init__(self, frame_samples: int = FRAME_SAMPLES):
        if frame_samples <= 0:
            raise ValueError("frame_samples must be positive")
        self._frame_samples = frame_samples
        self._buffer = np.empty(0, dtype=np.float32)

    @property
    def frame_samples(self) -> int:
        return self._frame_samples

    @property
    def frame_bytes(self) -> int:
        return self._frame_samples * BYTES_PER_SAMPLE

    @property
    def pending_samples(self) -> int:
        """Number of buffered samples not yet emitted."""
        return int(self._buffer.size)

    def push(self, samples: np.ndarray) -> list[bytes]:
        """
        Appends a block of mono samples and returns every completed frame.

        Args:
            samples: Float samples; multi-dimensional input is flattened.

        Returns:
            Completed frames, oldest first, each `frame_bytes` long.
        """
        block = np.asarray(samples, dtype=np.float32).ravel()
        if block.size:
            self._buffer = np.concatenate([self._buffer, block])

        frames: list[bytes] = []
        while self._buffer.size >= self._frame_samples:
            head = self._buffer[: self._frame_samples]
            self._buffer = self._buffer[self._frame_samples :]
            frames.append(float_to_pcm16(head).astype("<i2").tobytes())
        return frames

    def reset(self) -> None:
        """Drops any buffered partial frame."""
        self._buffer = np.empty(0, dtype=np.float32)
