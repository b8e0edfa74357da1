"""Least-recently-used broker that routes jobs from clients to ready workers."""

from __future__ import annotations

import sys
from collections import deque
from collections.abc import Sequence
from typing import TextIO

import zmq

from sdistrib.client import JOB_PORT
from sdistrib.messaging import receive_empty_message

RESULT_PORT = "4134"
READY = b"READY"


class Broker:
    """Routes client requests to idle workers and worker replies back to clients.

    Clients connect to the frontend with REQ sockets, workers to the backend
    with REQ sockets. A worker announces itself with a READY message and is
    queued again every time it delivers a reply.
    """

    def __init__(
        self,
        frontend_endpoint: str = f"tcp://*:{JOB_PORT}",
        backend_endpoint: str = f"tcp://*:{RESULT_PORT}",
        context: zmq.Context | None = None,
        out: TextIO | None = None,
    ) -> None:
        self._own_context = context is None
        self._context = zmq.Context() if context is None else context
        self._out = out
        self.ready_workers: deque[bytes] = deque()
        self.frontend = self._context.socket(zmq.ROUTER)
        self.backend = self._context.socket(zmq.ROUTER)
        try:
            self.frontend.bind(frontend_endpoint)
            self.backend.bind(backend_endpoint)
        except zmq.ZMQError:
            self.close()
            raise

    def __enter__(self) -> Broker:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def handle_backend(self) -> None:
        """Take one message from a worker: queue the worker, forward any reply."""
        worker_addr = self.backend.recv()
        self.ready_workers.append(worker_addr)
        receive_empty_message(self.backend)
        client_addr = self.backend.recv()
        if client_addr != READY:
            receive_empty_message(self.backend)
            reply = self.backend.recv()
            self.frontend.send_multipart([client_addr, b"", reply])

    def handle_frontend(self) -> None:
        """Take one client request and hand it to the least recently used worker."""
        if not self.ready_workers:
            raise LookupError("no worker is ready")
        client_addr = self.frontend.recv()
        receive_empty_message(self.frontend)
        request = self.frontend.recv()
        worker_addr = self.ready_workers.popleft()
        out = sys.stdout if self._out is None else self._out
        out.write(
            f"{client_addr.decode(errors='replace')} -> "
            f"{worker_addr.decode(errors='replace')}\n"
        )
        self.backend.send_multipart([worker_addr, b"", client_addr, b"", request])

    def poll_once(self, timeout: int | None = None) -> int:
        """Wait up to ``timeout`` ms for activity and handle it.

        The frontend is only watched while a worker is ready. Returns the
        number of sockets that were handled.
        """
        poller = zmq.Poller()
        poller.register(self.backend, zmq.POLLIN)
        if self.ready_workers:
            poller.register(self.frontend, zmq.POLLIN)
        events = dict(poller.poll(timeout))
        handled = 0
        if events.get(self.backend, 0) & zmq.POLLIN:
            self.handle_backend()
            handled += 1
        if events.get(self.frontend, 0) & zmq.POLLIN:
            self.handle_frontend()
            handled += 1
        return handled

    def run(self) -> None:
        """Route messages until interrupted."""
        while True:
            self.poll_once()

    def close(self) -> None:
        """Close both sockets, and the context if the broker created it."""
        self.frontend.close(linger=0)
        self.backend.close(linger=0)
        if self._own_context:
            self._context.term()


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point: run the broker on the standard ports."""
    with Broker() as broker:
        try:
            broker.run()
        except KeyboardInterrupt:
            return 0
    return 0