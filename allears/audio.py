"""Microphone capture feeding PCM16 frames into an asyncio queue."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

import numpy as np

logger = logging.getLogger(__name__)

# ~20ms @ 48k
DEFAULT_BLOCKSIZE = 960


def load_sounddevice():
    """
    Import sounddevice lazily. Returns None when the module or the PortAudio
    library behind it is missing, which means voice capture is unsupported here.
    """
    try:
        import sounddevice as sd
    except (ImportError, OSError) as e:
        logger.info("sounddevice unavailable: %s", e)
        return None
    return sd


def list_input_devices():
    """
    Returns available INPUT audio devices.
    """
    sd = load_sounddevice()
    if sd is None:
        return {"ok": False, "error": "sounddevice unavailable", "devices": []}

    devices = []
    try:
        for idx, d in enumerate(sd.query_devices()):
            if int(d.get("max_input_channels", 0)) <= 0:
                continue

            devices.append(
                {
                    "index": idx,
                    "name": d.get("name", f"Device {idx}"),
                    "max_input_channels": int(d.get("max_input_channels", 0)),
                    "default_samplerate": int(d.get("default_samplerate", 0) or 0),
                }
            )
    except Exception as e:
        return {
            "ok": False,
            "error": repr(e),
            "devices": [],
        }

    return {
        "ok": True,
        "devices": devices,
    }


def to_mono_int16(indata) -> bytes:
    """First channel of a sounddevice block as PCM16 little-endian bytes."""
    x = np.asarray(indata)

    if x.ndim == 2 and x.shape[1] >= 1:
        mono = x[:, 0]
    else:
        mono = x.reshape(-1)

    if mono.dtype == np.int16:
        f = mono.astype(np.float32) / 32768.0
    else:
        f = mono.astype(np.float32)

    f = np.clip(f, -1.0, 1.0)
    return (f * 32767.0).astype(np.int16).tobytes(order="C")


class MicrophoneCapture:
    """
    Opens a sounddevice InputStream and hands frames to the event loop.

    The PortAudio callback runs on its own thread; frames cross over with
    call_soon_threadsafe so the queue is only touched on the loop.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        device: Optional[Union[int, str]] = None,
        sample_rate: int = 48000,
        blocksize: int = DEFAULT_BLOCKSIZE,
        max_frames: int = 250,
    ) -> None:
        self._loop = loop
        self._device = device
        self._sample_rate = int(sample_rate)
        self._blocksize = int(blocksize)
        self.frames: "asyncio.Queue[bytes]" = asyncio.Queue(maxsize=max_frames)
        self.drops = 0
        self._stream = None

    def start(self) -> None:
        sd = load_sounddevice()
        if sd is None:
            raise RuntimeError("audio capture unavailable")
        self._stream = sd.InputStream(
            device=self._device,
            samplerate=self._sample_rate,
            channels=1,
            dtype="float32",
            blocksize=self._blocksize,
            callback=self._callback,
        )
        self._stream.start()

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug("sd_status: %s", status)
        pcm16 = to_mono_int16(indata)
        try:
            self._loop.call_soon_threadsafe(self._push, pcm16)
        except RuntimeError:
            # loop already closed
            pass

    def _push(self, pcm16: bytes) -> None:
        # drop oldest when behind to keep latency down
        if self.frames.full():
            try:
                self.frames.get_nowait()
            except asyncio.QueueEmpty:
                pass
            self.drops += 1
        self.frames.put_nowait(pcm16)

    def close(self) -> None:
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.debug("closing input stream: %s", e)
            if self.drops:
                logger.info("[AUDIO] Dropped %d frame(s) while the stream lagged", self.drops)
        self._stream = None
