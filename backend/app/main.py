"""
Command-line runner for a live audio session.

Connects, optionally streams a 16kHz mono PCM16 WAV file as the user's side of
the conversation, plays the model's audio, and prints one transcript per
model turn.

    live-audio-client --wav hello.wav --realtime --duration 20
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import sys

import numpy as np
import soundfile as sf
from dotenv import load_dotenv

from app.factory import build_session, build_transcriber
from config import LiveConfig
from constants import INPUT_CHUNK_MS, INPUT_SAMPLE_RATE_HZ, INPUT_SAMPLES_PER_CHUNK
from observability.logger import configure_logging, log_event
from session.live_session import LiveSession, SessionObservers


READY_TIMEOUT_S = 15.0


async def _stream_wav(session: LiveSession, wav_path: str, *, realtime: bool) -> int:
    audio, sr = sf.read(wav_path, dtype="int16", always_2d=True)
    if sr != INPUT_SAMPLE_RATE_HZ or audio.shape[1] != 1:
        raise RuntimeError(
            f"WAV must be {INPUT_SAMPLE_RATE_HZ}Hz mono PCM16. "
            f"Got sr={sr}, channels={audio.shape[1]}"
        )

    pcm = np.ascontiguousarray(audio[:, 0], dtype="<i2")
    mime_type = f"audio/pcm;rate={sr}"

    sent = 0
    for start in range(0, len(pcm), INPUT_SAMPLES_PER_CHUNK):
        chunk = pcm[start:start + INPUT_SAMPLES_PER_CHUNK].tobytes()
        if await session.send_media_chunk(base64.b64encode(chunk).decode("ascii"), mime_type):
            sent += 1
        if realtime:
            await asyncio.sleep(INPUT_CHUNK_MS / 1000)

    return sent


async def run(args: argparse.Namespace, config: LiveConfig) -> int:
    ready = asyncio.Event()

    def on_transcription(text: str) -> None:
        print(f"[transcript] {text}", file=sys.stderr)

    def on_playing(playing: bool) -> None:
        print(f"[playback] {'playing' if playing else 'idle'}", file=sys.stderr)

    observers = SessionObservers(
        on_setup_complete=ready.set,
        on_playing_state_change=on_playing,
        on_transcription=on_transcription,
    )

    session = build_session(
        config,
        observers=observers,
        transcriber=build_transcriber(config),
    )

    await session.connect()
    try:
        if args.wav:
            try:
                await asyncio.wait_for(ready.wait(), timeout=READY_TIMEOUT_S)
            except asyncio.TimeoutError:
                print("[session] no setupComplete received", file=sys.stderr)
                return 1
            sent = await _stream_wav(session, args.wav, realtime=args.realtime)
            log_event({"event_type": "WAV_STREAMED", "chunks": sent, "session_id": session.session_id})

        if args.duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(args.duration)
            await session.turns.drain()
    finally:
        await session.disconnect()

    return 0


def main() -> int:
    load_dotenv()

    ap = argparse.ArgumentParser(description="Realtime Gemini Live audio session")
    ap.add_argument("--wav", default=None, help="16kHz mono PCM16 WAV to stream as input")
    ap.add_argument("--realtime", action="store_true", help="Pace input at 20ms per chunk")
    ap.add_argument("--duration", type=float, default=None, help="Seconds to stay connected (default: until Ctrl-C)")
    args = ap.parse_args()

    config = LiveConfig.load_from_env()
    configure_logging(level=config.log_level, enabled=config.enable_json_logs)

    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
