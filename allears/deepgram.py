"""Deepgram live streaming recognizer over an aiohttp websocket."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Optional, Tuple, Union
from urllib.parse import urlencode

import aiohttp

from allears.audio import MicrophoneCapture, load_sounddevice
from allears.models import RecognitionResult
from allears.recognition import RecognitionConfig, RecognitionListener, Recognizer

logger = logging.getLogger(__name__)

DEEPGRAM_LISTEN_URL = "wss://api.deepgram.com/v1/listen"

# How long to wait for trailing finals after CloseStream
CLOSE_GRACE_S = 3.0


class DeepgramError(Exception):
    """Deepgram reported an error on the stream."""


def build_listen_url(config: RecognitionConfig, model: str = "nova-2", sample_rate: int = 48000) -> str:
    params = {
        "model": model,
        "language": config.language,
        "punctuate": "true",
        "smart_format": "true",
        "encoding": "linear16",
        "channels": 1,
        "sample_rate": int(sample_rate) if sample_rate else 48000,
        "interim_results": "true" if config.interim_results else "false",
        "endpointing": 200,
    }
    return f"{DEEPGRAM_LISTEN_URL}?{urlencode(params)}"


def parse_results_message(raw: str) -> Optional[Tuple[str, bool]]:
    """
    Extract (transcript, is_final) from a Deepgram message.

    Returns None for messages that carry no transcript (metadata, speech
    started, utterance end, empty results). Raises DeepgramError on errors.
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    msg_type = str(data.get("type") or "")
    if "error" in data or msg_type.lower() == "error":
        raise DeepgramError(str(data.get("description") or data.get("error") or data)[:300])
    if msg_type and msg_type != "Results":
        return None

    transcript = ""
    chan = data.get("channel")
    if isinstance(chan, dict):
        alts = chan.get("alternatives")
        if isinstance(alts, list) and alts and isinstance(alts[0], dict):
            transcript = alts[0].get("transcript") or ""

    if not transcript.strip():
        return None
    return transcript, bool(data.get("is_final"))


class ResultIndexer:
    """Gives streamed transcripts the slot indices a result list would have.

    Interim hypotheses share the current slot; a final closes it.
    """

    def __init__(self) -> None:
        self.index = 0

    def next(self, transcript: str, is_final: bool) -> List[RecognitionResult]:
        res = RecognitionResult(index=self.index, transcript=transcript, is_final=is_final)
        if is_final:
            self.index += 1
        return [res]


class DeepgramRecognizer(Recognizer):
    """Microphone -> Deepgram websocket -> RecognitionResult batches."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        device: Optional[Union[int, str]] = None,
        sample_rate: Optional[int] = None,
        voice_enabled: bool = True,
    ):
        if api_key is None:
            from allears.config import Config
            api_key = Config.DEEPGRAM_API_KEY
            model = model or Config.DEEPGRAM_MODEL
            device = device if device is not None else Config.audio_device()
            sample_rate = sample_rate or Config.AUDIO_SAMPLE_RATE
        self.api_key = api_key
        self.model = model or "nova-2"
        self.device = device
        self.sample_rate = int(sample_rate or 48000)
        self.voice_enabled = voice_enabled
        self._task: Optional[asyncio.Task] = None
        self._stop_evt: Optional[asyncio.Event] = None

    def supported(self) -> bool:
        return bool(self.api_key) and self.voice_enabled and load_sounddevice() is not None

    def start(self, config: RecognitionConfig, listener: RecognitionListener) -> None:
        if self._task is not None and not self._task.done():
            raise RuntimeError("previous recognition run still active")

        loop = asyncio.get_running_loop()
        capture = MicrophoneCapture(loop, device=self.device, sample_rate=self.sample_rate)
        capture.start()

        self._stop_evt = asyncio.Event()
        self._task = loop.create_task(self._run(config, listener, capture, self._stop_evt))

    def stop(self) -> None:
        if self._stop_evt is not None:
            self._stop_evt.set()

    async def _run(
        self,
        config: RecognitionConfig,
        listener: RecognitionListener,
        capture: MicrophoneCapture,
        stop_evt: asyncio.Event,
    ) -> None:
        url = build_listen_url(config, model=self.model, sample_rate=self.sample_rate)
        headers = {"Authorization": f"Token {self.api_key}"}
        indexer = ResultIndexer()

        try:
            timeout = aiohttp.ClientTimeout(total=None, sock_connect=10)
            async with aiohttp.ClientSession(timeout=timeout, headers=headers) as session:
                async with session.ws_connect(url, heartbeat=20) as ws:
                    listener.on_start()

                    async def sender():
                        while not stop_evt.is_set():
                            try:
                                chunk = await asyncio.wait_for(capture.frames.get(), timeout=0.1)
                            except asyncio.TimeoutError:
                                continue
                            await ws.send_bytes(chunk)
                        capture.close()
                        if not ws.closed:
                            await ws.send_str(json.dumps({"type": "CloseStream"}))

                    async def receiver():
                        async for msg in ws:
                            if msg.type == aiohttp.WSMsgType.ERROR:
                                raise DeepgramError(f"WebSocket error: {ws.exception()}")
                            if msg.type != aiohttp.WSMsgType.TEXT:
                                continue
                            parsed = parse_results_message(msg.data)
                            if parsed is None:
                                continue
                            transcript, is_final = parsed
                            if not is_final and not config.interim_results:
                                continue
                            listener.on_result(indexer.next(transcript, is_final))
                            if is_final and not config.continuous:
                                stop_evt.set()

                    tasks = [asyncio.create_task(sender()), asyncio.create_task(receiver())]
                    try:
                        done, pending = await asyncio.wait(set(tasks), return_when=asyncio.FIRST_COMPLETED)
                        for t in done:
                            exc = t.exception()
                            if exc:
                                raise exc
                        # Either CloseStream went out (receiver drains trailing
                        # finals) or the server closed first (sender winds down)
                        stop_evt.set()
                        if pending:
                            done, _ = await asyncio.wait(pending, timeout=CLOSE_GRACE_S)
                            for t in done:
                                exc = t.exception()
                                if exc and not isinstance(exc, aiohttp.ClientConnectionError):
                                    raise exc
                    finally:
                        for t in tasks:
                            t.cancel()
        except aiohttp.WSServerHandshakeError as e:
            logger.warning("[DEEPGRAM] Handshake rejected: %s", e.status)
            listener.on_error("not-allowed" if e.status in (401, 403) else "network")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning("[DEEPGRAM] Connection failed: %s", e)
            listener.on_error("network")
        except DeepgramError as e:
            logger.warning("[DEEPGRAM] Stream error: %s", e)
            listener.on_error("service")
        finally:
            capture.close()
            # on_end may start the next run from inside this task
            if self._task is asyncio.current_task():
                self._task = None
            listener.on_end()
