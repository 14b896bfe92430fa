"""
Embedded HTTP server exposing the reminder metrics
"""
import asyncio
import contextlib
import socket
from typing import Optional, Tuple

import uvicorn
from fastapi import FastAPI

from reminder.api.routes import metrics
from reminder.core.errors import MetricsError
from reminder.core.logging_config import LoggingConfig
from reminder.core.metrics import MetricsProvider

logger = LoggingConfig.get_logger(__name__)

READ_HEADER_TIMEOUT_SECONDS = 2
SHUTDOWN_TIMEOUT_SECONDS = 5.0


def parse_address(address: str) -> Tuple[str, int]:
    """Split "host:port" (or "[v6]:port", or ":port" for all interfaces)"""
    host, sep, port = address.rpartition(":")
    if not sep:
        raise MetricsError(f"invalid metrics address {address!r}: missing port")
    try:
        port_num = int(port)
    except ValueError:
        raise MetricsError(f"invalid metrics address {address!r}: bad port") from None
    if not 0 <= port_num <= 65535:
        raise MetricsError(f"invalid metrics address {address!r}: port out of range")
    host = host.strip("[]") or "0.0.0.0"
    return host, port_num


def create_metrics_app(provider: MetricsProvider) -> FastAPI:
    """FastAPI app serving only GET /metrics"""
    app = FastAPI(title="reminder metrics", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.metrics_provider = provider
    app.include_router(metrics.router)
    return app


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves process signal handling to the host"""

    def install_signal_handlers(self):
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class MetricsServer:
    """
    Serves /metrics on its own task

    The listening socket is bound in start() so an unusable address fails there
    rather than inside the background task.
    """

    def __init__(self, provider: MetricsProvider, address: str):
        self.provider = provider
        self.address = address
        self._socket: Optional[socket.socket] = None
        self._server: Optional[_EmbeddedServer] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def port(self) -> Optional[int]:
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    async def start(self):
        host, port = parse_address(self.address)
        self._socket = self._bind(host, port)

        config = uvicorn.Config(
            create_metrics_app(self.provider),
            lifespan="off",
            log_config=None,
            access_log=False,
            timeout_keep_alive=READ_HEADER_TIMEOUT_SECONDS,
        )
        self._server = _EmbeddedServer(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[self._socket]), name="metrics-server")
        logger.info(f"metrics server listening on {host}:{self.port}")

    def _bind(self, host: str, port: int) -> socket.socket:
        sock = None
        try:
            family = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)[0][0]
            sock = socket.socket(family, socket.SOCK_STREAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        except OSError as e:
            if sock is not None:
                sock.close()
            raise MetricsError(f"cannot listen on {self.address}: {e}") from e
        return sock

    async def wait_started(self, timeout: float = 5.0):
        """Wait until uvicorn accepts connections (mostly useful in tests)"""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not (self._server and self._server.started):
            if self._task is not None and self._task.done():
                raise MetricsError("metrics server exited during startup")
            if loop.time() >= deadline:
                raise MetricsError("metrics server did not start in time")
            await asyncio.sleep(0.01)

    async def shutdown(self, timeout: float = SHUTDOWN_TIMEOUT_SECONDS):
        """Stop serving, forcing the exit once the deadline passes"""
        if self._task is None:
            return

        task, sock = self._task, self._socket
        self._task = None
        self._socket = None

        self._server.should_exit = True
        try:
            done, _ = await asyncio.wait({task}, timeout=timeout)
            if not done:
                logger.error(f"metrics server did not stop within {timeout}s, forcing exit")
        except asyncio.CancelledError:
            logger.warning("metrics server shutdown interrupted, forcing exit")
            raise
        finally:
            if not task.done():
                self._server.force_exit = True
                task.cancel()
            # uvicorn still owns the socket until its task has finished
            task.add_done_callback(lambda t: self._release(t, sock))
            if not task.done():
                await asyncio.wait([task])

    def _release(self, task: asyncio.Task, sock: Optional[socket.socket]):
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"metrics server exited with error: {task.exception()}")
        if sock is not None:
            sock.close()
        logger.info("metrics server stopped")
