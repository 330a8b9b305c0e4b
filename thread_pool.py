"""Bounded worker pool for accepted client connections."""

from __future__ import annotations

import logging
import queue
import socket
import threading
from collections.abc import Callable

logger = logging.getLogger(__name__)

ClientAddress = tuple[str, int]
ConnectionJob = tuple[socket.socket, ClientAddress]
ConnectionHandler = Callable[[socket.socket, ClientAddress], None]


class ThreadPool:
    """Fixed-size worker threads fed from a bounded queue of accepted sockets.

    The pool owns every socket it accepts through ``submit``: a queued
    connection is either handed to the handler or closed by ``shutdown``.
    """

    def __init__(
        self,
        worker_count: int,
        queue_size: int,
        handler: ConnectionHandler,
    ) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._queue: queue.Queue[ConnectionJob] = queue.Queue(maxsize=queue_size)
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._worker_count = worker_count
        self._shutdown_lock = threading.Lock()
        self._shutdown_started = False

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._threads)

    @property
    def pending(self) -> int:
        """Connections accepted but not yet picked up by a worker."""
        return self._queue.qsize()

    def start(self) -> None:
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._worker_loop,
                name=f"static-worker-{index}",
                daemon=True,
            )
            self._threads.append(worker)
            worker.start()

    def submit(self, client_socket: socket.socket, address: ClientAddress) -> bool:
        """Queue a connection; False means the queue is full or the pool is stopping.

        On False the caller still owns ``client_socket``.
        """
        if self._stop_event.is_set():
            return False
        try:
            self._queue.put_nowait((client_socket, address))
        except queue.Full:
            return False
        return True

    def shutdown(self) -> None:
        """Stop the workers and close every connection still waiting in the queue."""
        with self._shutdown_lock:
            if self._shutdown_started:
                return
            self._shutdown_started = True

        self._stop_event.set()
        dropped = self._close_pending()

        for thread in self._threads:
            thread.join(timeout=1.0)

        # A submit racing the stop flag can still land after the first pass.
        dropped += self._close_pending()
        if dropped:
            logger.info("closed %d queued connection(s) on shutdown", dropped)

    def _close_pending(self) -> int:
        closed = 0
        while True:
            try:
                client_socket, address = self._queue.get_nowait()
            except queue.Empty:
                return closed
            _close_quietly(client_socket, address)
            closed += 1

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                client_socket, address = self._queue.get(timeout=0.2)
            except queue.Empty:
                continue
            if self._stop_event.is_set():
                _close_quietly(client_socket, address)
                return
            self._handler(client_socket, address)


def _close_quietly(client_socket: socket.socket, address: ClientAddress) -> None:
    try:
        client_socket.close()
    except OSError:
        logger.debug("error closing queued connection from %s", address[0])
