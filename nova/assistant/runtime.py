"""Nova voice assistant daemon."""

from __future__ import annotations

import argparse
import asyncio
import concurrent.futures
import contextlib
import logging
import signal

from .camera import CommandCamera
from .config import AssistantConfig
from .directory import Directory
from .handoff import MqttHandoff
from .llm import GeminiChatService
from .memory import JsonFileBlobStore, MemoryStore
from .mqtt import AssistantMqtt
from .mqtt_publisher import AssistantMqttPublisher
from .reminders import ReminderScheduler
from .session import AssistantSession
from .speech import LogSpeaker, SpeechListener, StdinListener, WyomingListener, WyomingSpeaker

LOGGER = logging.getLogger("nova-assistant")

BUSY_POLL_SECONDS = 0.1


class NovaAssistant:
    def __init__(self, config: AssistantConfig, *, text_mode: bool = False) -> None:
        self.config = config
        self.text_mode = text_mode
        self.mqtt = AssistantMqtt(config.mqtt, logger=LOGGER)
        self.publisher = AssistantMqttPublisher(self.mqtt, config.mqtt.topic_base, logger=LOGGER)
        self.memory = MemoryStore(JsonFileBlobStore(config.memory_file, logger=LOGGER), logger=LOGGER)
        self.directory = Directory(logger=LOGGER)
        self.camera = CommandCamera(config.camera, logger=LOGGER) if config.camera else None
        self.chat = GeminiChatService(config.llm, logger=LOGGER, log_messages=config.log_llm_messages)
        if text_mode:
            self.speaker = LogSpeaker(logger=LOGGER)
            self.listener: SpeechListener = StdinListener(logger=LOGGER)
        else:
            self.speaker = WyomingSpeaker(config, logger=LOGGER)
            self.listener = WyomingListener(config, logger=LOGGER)
        self.stopped = asyncio.Event()
        self.session = AssistantSession(
            chat=self.chat,
            speaker=self.speaker,
            memory=self.memory,
            directory=self.directory,
            camera=self.camera,
            handoff=MqttHandoff(self.publisher, logger=LOGGER),
            publisher=self.publisher,
            timings=config.timings,
            capture_dir=config.camera.capture_dir if config.camera else None,
            on_terminate=self.stopped.set,
            logger=LOGGER,
        )
        self.reminders = ReminderScheduler(
            directory=self.directory,
            notifier=self.session.announce_reminder,
            poll_interval=config.timings.reminder_poll_interval,
            logger=LOGGER,
        )
        self._loop: asyncio.AbstractEventLoop | None = None

    async def run(self) -> None:
        self._loop = asyncio.get_running_loop()
        self.memory.load()
        self.mqtt.connect()
        self._subscribe_ask_topic()
        self.session.publish_snapshot()
        self.reminders.start()
        await self.listener.start()
        LOGGER.info("%s assistant ready (%s mode)", self.config.assistant_name, "text" if self.text_mode else "voice")
        while not self.stopped.is_set():
            if self.session.busy:
                await asyncio.sleep(BUSY_POLL_SECONDS)
                continue
            text = await self.listener.listen()
            if text is None:
                if isinstance(self.listener, StdinListener) and self.listener.closed:
                    LOGGER.info("Input closed, shutting down")
                    self.stopped.set()
                continue
            LOGGER.info("Heard: %s", text)
            try:
                await self.session.handle_user_text(text)
            except Exception as exc:  # pylint: disable=broad-except
                LOGGER.exception("Turn failed for %r: %s", text, exc)

    async def shutdown(self) -> None:
        self.stopped.set()
        await self.reminders.stop()
        await self.listener.stop()
        await self.session.close()
        await self.chat.close()
        self.mqtt.disconnect()

    def _subscribe_ask_topic(self) -> None:
        if not self.mqtt.is_connected():
            return
        self.mqtt.subscribe(self.publisher.ask_topic, self._handle_ask_message)

    def _handle_ask_message(self, payload: str) -> None:
        text = payload.strip()
        if not text or self._loop is None:
            return
        future = asyncio.run_coroutine_threadsafe(self.session.handle_user_text(text), self._loop)
        future.add_done_callback(lambda done: self._log_ask_failure(text, done))

    @staticmethod
    def _log_ask_failure(text: str, future: concurrent.futures.Future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            LOGGER.error("Typed turn failed for %r: %s", text, exc, exc_info=exc)


async def main() -> None:
    parser = argparse.ArgumentParser(description="Nova voice assistant")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--text", action="store_true", help="Read typed input and log replies instead of using audio")
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    config = AssistantConfig.from_env()
    assistant = NovaAssistant(config, text_mode=args.text)

    loop = asyncio.get_running_loop()

    def _handle_signal(signum: int) -> None:
        LOGGER.info("Received signal %s, shutting down", signum)
        assistant.stopped.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    run_task = asyncio.create_task(assistant.run())
    run_task.add_done_callback(lambda _task: assistant.stopped.set())
    await assistant.stopped.wait()
    await assistant.shutdown()
    run_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await run_task


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
