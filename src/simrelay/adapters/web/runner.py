"""Runs the introspection app under uvicorn on a background thread."""

import socket
import threading
import time

import uvicorn
from fastapi import FastAPI

from simrelay.utils.errors import IntrospectionServerError
from simrelay.utils.telemetry import get_logger


class IntrospectionServerRunner:
    """Owns the uvicorn server thread for one relay session."""

    def __init__(
        self,
        app: FastAPI,
        host: str = "127.0.0.1",
        port: int = 1464,
        log_level: str = "warning",
    ):
        self.app = app
        self.host = host
        self.port = port
        self.log_level = log_level
        self.logger = get_logger("simrelay.introspection")

        self._server: uvicorn.Server | None = None
        self._socket: socket.socket | None = None
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def bound_port(self) -> int | None:
        """Actual listening port (useful when started with port 0)."""
        if self._socket is None:
            return None
        return self._socket.getsockname()[1]

    def start(self, ready_timeout: float = 5.0) -> None:
        """Bind the listening socket and serve on a daemon thread.

        Raises:
            IntrospectionServerError: If the address cannot be bound
        """
        if self.running:
            return

        # Bind here so an occupied port surfaces in the caller, not in the thread
        sock: socket.socket | None = None
        try:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            if sock is not None:
                sock.close()
            raise IntrospectionServerError(self.host, self.port, str(e)) from e

        self._socket = sock
        config = uvicorn.Config(
            self.app,
            log_level=self.log_level,
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [sock]},
            name="simrelay-introspection",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + ready_timeout
        while not self._server.started and self._thread.is_alive():
            if time.monotonic() >= deadline:
                break
            time.sleep(0.01)

        self.logger.info(
            "Introspection server started", host=self.host, port=self.bound_port
        )

    def stop(self, timeout: float = 5.0) -> None:
        if self._server is None:
            return
        self._server.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        if self._socket is not None:
            self._socket.close()
        self._server = None
        self._thread = None
        self._socket = None
        self.logger.info("Introspection server stopped")
