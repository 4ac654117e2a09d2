"""Main application entry-point for meg-relay."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from enum import Enum
from typing import Callable, Optional

from .adapters import SerialTransport
from .catalog import Catalog, build_catalog
from .config import RelayConfig, load_config
from .console import ConsoleWatcher
from .core.protocols import RelayTransport
from .dispatcher import Dispatcher
from .drive import DriveLoop
from .handshake import perform_handshake
from .health import HealthReporter, HealthServer
from .logging import configure_logging
from .reassembly import StreamReassembler
from .transmitter import Transmitter

LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[RelayConfig], RelayTransport]


class RelayState(str, Enum):
    COLD_START = "cold_start"
    HANDSHAKING = "handshaking"
    STREAMING = "streaming"
    STOPPING = "stopping"
    STOPPED = "stopped"
    FAILED = "failed"


def _default_transport_factory(config: RelayConfig) -> RelayTransport:
    return SerialTransport(config.serial)


class RelayApp:
    """Coordinates relay startup and shutdown.

    The lifecycle is strictly ordered:
    - open the transport (the app owns it for the whole run)
    - verify the downstream controller with the handshake gate
    - stream telemetry through the drive loop until a stop is requested
    - close the transport

    The drive loop is never constructed when the handshake fails. The
    transport factory can be injected for testing.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        *,
        transport_factory: Optional[TransportFactory] = None,
        catalog: Optional[Catalog] = None,
        watch_console: bool = False,
        handle_signals: bool = False,
    ) -> None:
        self._config = config or load_config()
        self._transport_factory = transport_factory or _default_transport_factory
        self._catalog = catalog
        self._watch_console = watch_console
        self._handle_signals = handle_signals
        self._transport: Optional[RelayTransport] = None
        self._drive_loop: Optional[DriveLoop] = None
        self._transmitter: Optional[Transmitter] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._state = RelayState.COLD_START
        self._state_detail: Optional[str] = None

    @property
    def state(self) -> RelayState:
        return self._state

    @property
    def health(self) -> HealthReporter:
        return self._health

    @property
    def drive_loop(self) -> Optional[DriveLoop]:
        return self._drive_loop

    def request_stop(self) -> None:
        """Ask the relay to stop; safe to call from any thread."""

        loop = self._loop
        event = self._stop_event
        if loop is None or event is None:
            return

        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            current_loop = None

        if current_loop is loop:
            event.set()
        else:
            loop.call_soon_threadsafe(event.set)

    async def run(self) -> int:
        """Run the relay until stopped.

        Returns:
            Process exit code: 0 after a clean stop, 1 when startup failed.
        """

        self._loop = asyncio.get_running_loop()
        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        if self._handle_signals:
            self._install_signal_handlers()
        if self._watch_console:
            ConsoleWatcher(self.request_stop).start()

        await self._transition_state(RelayState.COLD_START, detail="initialising")

        transport = self._transport_factory(self._config)
        try:
            transport.open()
        except Exception as exc:
            LOGGER.error("Failed to open transport: %s", exc)
            await self._health.update("transport", False, str(exc))
            await self._transition_state(RelayState.FAILED, detail="transport unavailable")
            self._remove_signal_handlers()
            return 1

        self._transport = transport
        await self._health.update("transport", True, None)

        try:
            await self._start_health_server()
            if not await self._run_handshake(transport):
                await self._transition_state(
                    RelayState.FAILED, detail="no response from controller"
                )
                return 1

            self._drive_loop = self._build_drive_loop(transport)
            await self._health.update("drive", True, "running")
            await self._transition_state(RelayState.STREAMING, detail="relaying telemetry")
            await self._drive_loop.run(self._stop_event)
            return 0
        except asyncio.CancelledError:
            LOGGER.info("meg-relay received shutdown signal")
            raise
        finally:
            await self._shutdown()

    @classmethod
    def start(cls, config: Optional[RelayConfig] = None, *, console: bool = True) -> int:
        instance = cls(config=config, watch_console=console, handle_signals=True)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            verbose_transport=instance._config.logging.verbose_transport,
        )
        try:
            return asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("meg-relay received shutdown signal")
            return 0

    async def _run_handshake(self, transport: RelayTransport) -> bool:
        await self._transition_state(RelayState.HANDSHAKING, detail="awaiting controller")
        handshake = self._config.handshake
        drive = self._config.drive
        succeeded = await perform_handshake(
            transport,
            transport,
            probe=handshake.probe,
            response=handshake.response,
            timeout=handshake.timeout_seconds,
            poll_interval=handshake.poll_interval_seconds,
            stop_event=self._stop_event,
            encoding=drive.encoding,
            max_line_length=drive.max_line_length,
        )
        if succeeded:
            LOGGER.info("Handshake successful")
            await self._health.update("handshake", True, None)
        else:
            LOGGER.error("Handshake failed; not starting the drive loop")
            await self._health.update("handshake", False, "no response")
        return succeeded

    def _build_drive_loop(self, transport: RelayTransport) -> DriveLoop:
        drive = self._config.drive
        catalog = self._catalog or build_catalog(self._config.bindings)
        dispatcher = Dispatcher.from_catalog(catalog, range_policy=drive.range_policy)
        transmitter = Transmitter(transport, encoding=drive.encoding)
        self._transmitter = transmitter

        loop = DriveLoop(
            transport,
            transmitter,
            dispatcher=dispatcher,
            reassembler=StreamReassembler(
                encoding=drive.encoding, max_line_length=drive.max_line_length
            ),
            poll_interval=drive.poll_interval_seconds,
            read_size=drive.read_size,
        )

        self._health.register_metrics("drive", loop.stats.as_dict)
        self._health.register_metrics("dispatch", dispatcher.stats.as_dict)
        self._health.register_metrics(
            "transmit",
            lambda: {"sent": transmitter.lines_sent, "failed": transmitter.lines_failed},
        )
        LOGGER.debug("Channel-motor index: %s", dispatcher.index.as_dict())
        return loop

    async def _shutdown(self) -> None:
        if self._state is not RelayState.FAILED:
            await self._transition_state(RelayState.STOPPING, detail="releasing transport")

        if self._transport is not None:
            try:
                self._transport.close()
            except Exception:
                LOGGER.debug("Error closing transport", exc_info=True)
            self._transport = None
            await self._health.update("transport", False, "closed")

        if self._drive_loop is not None:
            await self._health.update("drive", False, "stopped")

        if self._health_server is not None:
            await self._health_server.stop()
            self._health_server = None

        self._remove_signal_handlers()

        if self._state is not RelayState.FAILED:
            await self._transition_state(RelayState.STOPPED, detail="shutdown complete")

    async def _transition_state(
        self, state: RelayState, *, detail: Optional[str] = None
    ) -> None:
        if state == self._state and detail == self._state_detail:
            return

        previous = self._state
        self._state = state
        self._state_detail = detail

        message_detail = detail or state.value
        LOGGER.info(
            "Relay state transition %s -> %s (%s)",
            previous.value,
            state.value,
            message_detail,
        )
        await self._health.set_relay_state(
            state.value,
            healthy=state in (RelayState.HANDSHAKING, RelayState.STREAMING),
            detail=message_detail,
        )

    async def _start_health_server(self) -> None:
        health = self._config.health
        if not health.enabled or health.port <= 0:
            return

        server = HealthServer(self._health, health.host, health.port)
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start health endpoint: %s", exc)
            await self._health.update("health-endpoint", False, str(exc))
        else:
            self._health_server = server
            await self._health.update("health-endpoint", True, None)

    def _install_signal_handlers(self) -> None:
        loop = self._loop
        if loop is None:
            return
        for signum in (signal.SIGINT, signal.SIGTERM):
            # Not supported on Windows event loops or outside the main thread.
            with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                loop.add_signal_handler(signum, self.request_stop)

    def _remove_signal_handlers(self) -> None:
        loop = self._loop
        if loop is None or not self._handle_signals:
            return
        for signum in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
                loop.remove_signal_handler(signum)
