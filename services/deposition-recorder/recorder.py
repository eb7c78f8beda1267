"""
Command-line deposition recorder.

Captures the default microphone at 16 kHz mono, frames the samples into
250 ms PCM16 frames and streams them to the relay. Transcripts and analysis
pushed back by the relay are printed as they arrive.

Usage:
    python recorder.py --url ws://localhost:8000/ws/recordings \
        --case-id 6a1c... --witness "Jane Doe" --duration 600
"""

import argparse
import asyncio
import json
import signal
import sys
from uuid import UUID

import numpy as np
import sounddevice as sd
import websockets
from legal_common.audio import SAMPLE_RATE, AudioFramer, encode_frame
from legal_common.logging import setup_logging
from relay_protocol import build_start_message, receive_events

logger = setup_logging()

COMPLETION_TIMEOUT_SECONDS = 15.0


class MicrophoneStreamer:
    """Moves microphone blocks from the sounddevice thread to the event loop."""

    def __init__(self, device: int | None, block_ms: int = 50):
        self._device = device
        self._blocksize = int(SAMPLE_RATE * block_ms / 1000)
        self._loop = asyncio.get_running_loop()
        self._blocks: asyncio.Queue[np.ndarray] = asyncio.Queue()
        self._stream: sd.InputStream | None = None

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.warning("Audio input status", extra={"status": str(status)})
        self._loop.call_soon_threadsafe(self._blocks.put_nowait, indata[:, 0].copy())

    def start(self) -> None:
        self._stream = sd.InputStream(
            samplerate=SAMPLE_RATE,
            channels=1,
            dtype="float32",
            blocksize=self._blocksize,
            device=self._device,
            callback=self._callback,
        )
        self._stream.start()
        logger.info("Microphone capture started", extra={"device": self._device})

    def stop(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None

    async def next_block(self) -> np.ndarray:
        return await self._blocks.get()


async def send_audio(websocket, streamer: MicrophoneStreamer, stop: asyncio.Event) -> int:
    """Streams frames until `stop` is set. Returns the number of frames sent."""
    framer = AudioFramer()
    sent = 0
    while not stop.is_set():
        try:
            block = await asyncio.wait_for(streamer.next_block(), timeout=0.5)
        except asyncio.TimeoutError:
            continue
        for frame in framer.push(block):
            await websocket.send(
                json.dumps({"type": "audio_chunk", "chunk": encode_frame(frame)})
            )
            sent += 1
    # The partial tail is not sent.
    framer.reset()
    return sent


async def record(args: argparse.Namespace) -> int:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop.set)
    except NotImplementedError:
        pass  # Windows: Ctrl+C raises KeyboardInterrupt instead

    async with websockets.connect(args.url, max_size=None) as websocket:
        started = asyncio.Event()
        receiver = asyncio.create_task(receive_events(websocket, started, stop))

        await websocket.send(json.dumps(build_start_message(args)))
        waiter = asyncio.create_task(started.wait())
        await asyncio.wait([waiter, receiver], return_when=asyncio.FIRST_COMPLETED)
        if not started.is_set():
            waiter.cancel()
            return 1

        streamer = MicrophoneStreamer(args.device)
        streamer.start()
        if args.duration:
            loop.call_later(args.duration, stop.set)
        try:
            sent = await send_audio(websocket, streamer, stop)
        finally:
            streamer.stop()
        logger.info("Audio capture stopped", extra={"frames_sent": sent})

        if receiver.done():
            # The relay ended the recording on its own.
            return 0 if receiver.result() else 1

        await websocket.send(json.dumps({"type": "stop_recording"}))
        try:
            completed = await asyncio.wait_for(receiver, COMPLETION_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning("Relay did not confirm completion in time")
            return 1
    return 0 if completed else 1


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Stream a live deposition to the relay")
    parser.add_argument(
        "--url", default="ws://localhost:8000/ws/recordings", help="Relay WebSocket URL"
    )
    parser.add_argument("--case-id", type=UUID, required=True, help="Case the deposition belongs to")
    parser.add_argument("--witness", required=True, help="Witness name")
    parser.add_argument("--conductor", default=None, help="Attorney conducting the deposition")
    parser.add_argument("--opposing-counsel", default=None, help="Opposing counsel")
    parser.add_argument("--goals", default=None, help="Goals of the deposition")
    parser.add_argument("--device", type=int, default=None, help="Input device index")
    parser.add_argument(
        "--duration", type=float, default=None, help="Stop after this many seconds"
    )
    return parser.parse_args(argv)


def main() -> None:
    args = parse_args()
    try:
        sys.exit(asyncio.run(record(args)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
