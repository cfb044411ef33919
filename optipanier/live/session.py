"""Live voice conversation: microphone → realtime session → speaker."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

from ..config import LiveConfig
from ..errors import DeviceUnavailableError, SessionError
from .capture import MicrophoneCapture
from .pcm import encode_frame
from .playback import PlaybackContext
from .state import LiveState, LiveStatus, event_from_message, reduce_event

logger = logging.getLogger(__name__)


class LiveAssistant:
    """Owns one live conversation and every resource it acquires.

    ``connect`` takes the system instruction and returns an async context
    manager yielding a session with ``send_realtime_input(audio=...)`` and
    ``receive()``. Status moves IDLE → CONNECTING → CONNECTED and back to
    IDLE on ``stop()``; failures pass through ERROR and always release
    everything before settling to IDLE.
    """

    def __init__(
        self,
        connect: Callable,
        config: LiveConfig | None = None,
        capture_factory: Callable | None = None,
        playback_factory: Callable | None = None,
        on_transcript: Callable[[str], None] | None = None,
    ) -> None:
        self._connect = connect
        self._config = config or LiveConfig()
        self._capture_factory = capture_factory or MicrophoneCapture
        self._playback_factory = playback_factory or PlaybackContext
        self._on_transcript = on_transcript

        self._status = LiveStatus.IDLE
        self._state = LiveState()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._capture = None
        self._playback = None
        self._session = None
        self._exit_stack: contextlib.AsyncExitStack | None = None
        self._receive_task: asyncio.Task | None = None
        self._send_tasks: set[asyncio.Task] = set()
        self._closing = False
        self._idle: asyncio.Event | None = None
        self.last_error: BaseException | None = None

    @property
    def status(self) -> LiveStatus:
        return self._status

    @property
    def transcript(self) -> list[str]:
        return list(self._state.transcript)

    @property
    def state(self) -> LiveState:
        return self._state

    async def __aenter__(self) -> LiveAssistant:
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.stop()

    async def start(self) -> None:
        """Open the microphone, the speaker and the remote session.

        Returns without error if ``stop()`` is called while connecting.

        Raises:
            DeviceUnavailableError: The microphone or speaker is missing or
                the microphone stream cannot start.
            SessionError: The remote session could not be opened.
        """
        if self._status is not LiveStatus.IDLE:
            await self.stop()

        self._loop = asyncio.get_running_loop()
        self._idle = asyncio.Event()
        self._status = LiveStatus.CONNECTING
        self._state = LiveState()
        self.last_error = None
        cfg = self._config

        try:
            self._capture = self._capture_factory(cfg.input_sample_rate, cfg.frame_size)
            self._capture.open()
            self._playback = self._playback_factory(cfg.output_sample_rate)
            self._playback.open()

            stack = contextlib.AsyncExitStack()
            self._exit_stack = stack
            session = await stack.enter_async_context(
                self._connect(cfg.system_instruction)
            )
        except DeviceUnavailableError as e:
            await self._fail(e)
            raise
        except Exception as e:
            await self._fail(e)
            raise SessionError(f"could not open the live session: {e}") from e

        if self._exit_stack is not stack:
            # stop() ran while the session was being opened
            await stack.aclose()
            logger.info("Conversation arrêtée pendant la connexion")
            return

        self._session = session
        self._status = LiveStatus.CONNECTED
        logger.info("Session vocale connectée")
        self._receive_task = asyncio.create_task(self._receive_loop())
        try:
            self._capture.start(self._on_frame)
        except DeviceUnavailableError as e:
            await self._fail(e)
            raise
        except Exception as e:
            await self._fail(e)
            raise DeviceUnavailableError(f"microphone could not start: {e}") from e

    async def stop(self) -> None:
        """Release every resource and return to IDLE. Safe to call repeatedly."""
        if self._closing:
            return
        if self._status is LiveStatus.IDLE and self._session is None:
            return
        await self._teardown()
        self._status = LiveStatus.IDLE

    async def wait_closed(self) -> None:
        """Wait until the conversation has ended and resources are released."""
        if self._idle is not None:
            await self._idle.wait()

    async def _fail(self, error: BaseException) -> None:
        self._status = LiveStatus.ERROR
        self.last_error = error
        logger.error("Erreur de la session vocale : %s", error)
        await self._teardown()
        self._status = LiveStatus.IDLE

    async def _teardown(self) -> None:
        self._closing = True
        try:
            current = asyncio.current_task()
            task, self._receive_task = self._receive_task, None
            if task is not None and task is not current:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

            stack, self._exit_stack = self._exit_stack, None
            self._session = None
            if stack is not None:
                try:
                    await stack.aclose()
                except Exception:
                    logger.exception("Échec de la fermeture de la session vocale")

            capture, self._capture = self._capture, None
            if capture is not None:
                try:
                    capture.close()
                except Exception:
                    logger.exception("Échec de l'arrêt du micro")

            for send in list(self._send_tasks):
                send.cancel()
            self._send_tasks.clear()

            playback, self._playback = self._playback, None
            if playback is not None:
                try:
                    playback.close()
                except Exception:
                    logger.exception("Échec de la fermeture de la sortie audio")
        finally:
            self._closing = False
            if self._idle is not None:
                self._idle.set()

    def _on_frame(self, samples) -> None:
        # Audio thread: encode here, send from the event loop
        data = encode_frame(samples)
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._dispatch_frame, data)
        except RuntimeError:
            # loop closed between the check and the call
            return

    def _dispatch_frame(self, data: bytes) -> None:
        if self._status is not LiveStatus.CONNECTED or self._session is None:
            return
        task = asyncio.create_task(self._send_frame(self._session, data))
        self._send_tasks.add(task)
        task.add_done_callback(self._send_tasks.discard)

    async def _send_frame(self, session, data: bytes) -> None:
        try:
            await session.send_realtime_input(
                audio={
                    "data": data,
                    "mime_type": f"audio/pcm;rate={self._config.input_sample_rate}",
                }
            )
        except Exception as e:
            logger.warning("Échec d'envoi d'une trame audio : %s", e)

    async def _receive_loop(self) -> None:
        try:
            while True:
                received = False
                # receive() ends after each completed turn
                async for message in self._session.receive():
                    received = True
                    self.handle_message(message)
                if not received:
                    logger.info("Session vocale fermée par le serveur")
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._fail(e)
            return
        await self.stop()

    def handle_message(self, message) -> None:
        """Apply one server message: transcripts, turn completion, audio."""
        event = event_from_message(message)
        playback = self._playback
        now = playback.current_time if playback is not None else 0.0
        before = len(self._state.transcript)

        self._state, scheduled = reduce_event(
            self._state, event, now, self._config.output_sample_rate
        )
        if playback is not None:
            for buf in scheduled:
                playback.play_at(buf.samples, buf.start)

        if self._on_transcript is not None:
            for line in self._state.transcript[before:]:
                self._on_transcript(line)
