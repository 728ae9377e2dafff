# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import numpy as np
import pytest

try:
    import audio.sounddevice_output as sd_output
except OSError:  # PortAudio shared library missing on this host
    pytest.skip("PortAudio not available", allow_module_level=True)

from audio.output import PlaybackError


class FakeStream:
    """Stands in for sd.OutputStream; the test pulls audio through its callback."""

    def __init__(self, *, callback: Any, **kwargs: Any) -> None:
        self.callback = callback
        self.kwargs = kwargs
        self.started = False
        self.closed = False

    def start(self) -> None:
        self.started = True

    def abort(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    def pull(self, frames: int) -> list[float]:
        out = np.full((frames, 1), 9.0, dtype=np.float32)
        self.callback(out, frames, None, None)
        return out[:, 0].tolist()


@pytest.fixture
def streams(monkeypatch: pytest.MonkeyPatch) -> list[FakeStream]:
    built: list[FakeStream] = []

    def factory(**kwargs: Any) -> FakeStream:
        stream = FakeStream(**kwargs)
        built.append(stream)
        return stream

    monkeypatch.setattr(sd_output.sd, "OutputStream", factory)
    return built


def f32(*values: float) -> np.ndarray:
    return np.array(values, dtype=np.float32)


def test_consecutive_fragments_share_one_stream(streams):
    async def scenario() -> list[int]:
        out = sd_output.SoundDeviceOutput()
        done: list[int] = []

        out.render(f32(0.25, 0.5, 0.75), lambda: done.append(1))
        (stream,) = streams
        assert stream.started

        assert stream.pull(2) == [0.25, 0.5]
        await asyncio.sleep(0)
        assert done == []

        # Tail of the fragment, padded with silence
        assert stream.pull(2) == [0.75, 0.0]
        await asyncio.sleep(0)
        assert done == [1]

        out.render(f32(-0.5), lambda: done.append(2))
        assert stream.pull(1) == [-0.5]
        await asyncio.sleep(0)

        assert len(streams) == 1
        return done

    assert asyncio.run(scenario()) == [1, 2]


def test_idle_stream_writes_silence(streams):
    async def scenario() -> None:
        out = sd_output.SoundDeviceOutput()
        out.render(f32(0.5), lambda: None)
        streams[0].pull(1)

        assert streams[0].pull(3) == [0.0, 0.0, 0.0]

    asyncio.run(scenario())


def test_stopped_render_never_completes(streams):
    async def scenario() -> list[int]:
        out = sd_output.SoundDeviceOutput()
        done: list[int] = []

        handle = out.render(f32(0.5, 0.5), lambda: done.append(1))
        handle.stop()
        assert streams[0].pull(2) == [0.0, 0.0]
        await asyncio.sleep(0)

        # The output is free for the next fragment
        out.render(f32(0.25), lambda: done.append(2))
        streams[0].pull(1)
        await asyncio.sleep(0)
        return done

    assert asyncio.run(scenario()) == [2]


def test_second_render_while_active_is_rejected(streams):
    async def scenario() -> None:
        out = sd_output.SoundDeviceOutput()
        out.render(f32(0.5), lambda: None)
        with pytest.raises(PlaybackError):
            out.render(f32(0.5), lambda: None)

    asyncio.run(scenario())


def test_close_releases_stream_and_next_render_reopens(streams):
    async def scenario() -> None:
        out = sd_output.SoundDeviceOutput()
        out.render(f32(0.5), lambda: None)
        out.close()

        assert streams[0].closed
        out.render(f32(0.5), lambda: None)
        assert len(streams) == 2

    asyncio.run(scenario())
