"""Client side of the relay's recording protocol."""

import argparse
import asyncio
import json
import sys
from typing import TextIO

START_RECORDING = "start_recording"
RECORDING_STARTED = "recording_started"
RECORDING_COMPLETED = "recording_completed"
RECORDING_FAILED = "recording_failed"


def build_start_message(args: argparse.Namespace) -> dict:
    message = {
        "type": START_RECORDING,
        "caseId": str(args.case_id),
        "witnessName": args.witness,
    }
    optional = {
        "depositionConductor": args.conductor,
        "opposingCounsel": args.opposing_counsel,
        "depositionGoals": args.goals,
    }
    message.update({key: value for key, value in optional.items() if value})
    return message


def render_event(event: dict) -> str | None:
    """Formats a relay event for the terminal; None for events not shown."""
    match event.get("type"):
        case "PartialTranscript":
            return f"\r... {event['transcript']}"
        case "FinalTranscript":
            return f"\r>>> {event['transcript']}\n"
        case "analysis":
            analysis = event.get("analysis") or {}
            lines = ["\n--- analysis ---"]
            for item in analysis.get("discrepancies", []):
                lines.append(f"! {item.get('testimony_excerpt')}: {item.get('explanation')}")
            for question in analysis.get("suggested_questions", []):
                lines.append(f"? {question}")
            return "\n".join(lines) + "\n"
        case "error":
            return f"\n[error] {event.get('message')}\n"
        case "recording_started":
            return f"Recording deposition {event.get('depositionId')}\n"
        case "recording_completed":
            return f"\nRecording {event.get('depositionId')} completed\n"
        case "recording_failed":
            return f"\nRecording {event.get('depositionId')} failed\n"
    return None


async def receive_events(
    websocket,
    started: asyncio.Event,
    stop: asyncio.Event,
    out: TextIO = sys.stdout,
) -> bool:
    """
    Prints relay events until the recording ends.

    Sets `started` on recording_started. Sets `stop` whenever the recording
    can no longer continue, so audio capture ends with it.

    Returns:
        True if the relay confirmed completion, False otherwise.
    """
    try:
        async for raw in websocket:
            event = json.loads(raw)
            text = render_event(event)
            if text:
                out.write(text)
                out.flush()

            event_type = event.get("type")
            if event_type == RECORDING_STARTED:
                started.set()
            elif event_type == RECORDING_COMPLETED:
                return True
            elif event_type == RECORDING_FAILED:
                return False
            elif event_type == "error" and not started.is_set():
                return False
        return False
    finally:
        stop.set()
