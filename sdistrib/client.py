"""Client that submits one job to the manager and saves the resulting image."""

from __future__ import annotations

import random
import sys
from collections.abc import Sequence
from pathlib import Path

import zmq

from sdistrib.messaging import recv_packed, send_packed, set_random_identity
from sdistrib.parse import ArgumentError, HelpRequested, parse_args
from sdistrib.protocol import Image, ImageError, error_message

JOB_PORT = "4133"


def job_address(host: str) -> str:
    """Return the endpoint on which the manager accepts jobs."""
    return f"tcp://{host}:{JOB_PORT}"


def run_client(
    client_id: int,
    address: str,
    args: Sequence[str],
    context: zmq.Context | None = None,
) -> Image:
    """Send the job described by ``args`` to ``address`` and save the reply.

    Returns the reply. The image is written to the job's output path only
    when the worker reported no error.
    """
    own_context = context is None
    ctx = zmq.Context() if own_context else context
    try:
        with ctx.socket(zmq.REQ) as sock:
            set_random_identity(sock)
            sock.connect(address)
            job = parse_args(args)
            send_packed(sock, job)
            reply: Image = recv_packed(sock, Image)
    finally:
        if own_context:
            ctx.term()

    print(f"Client {client_id}: {reply.jobid}")
    if reply.error != ImageError.OK:
        print(f"Client {client_id}: Error: {error_message(reply.error)}")
        return reply
    Path(job.output_path).write_bytes(reply.data)
    return reply


def main(argv: Sequence[str] | None = None) -> int:
    """Command entry point: <server address> <job arguments>."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: sdistrib-client <server address> <args>", file=sys.stderr)
        return 1
    address = job_address(args[0])
    print(f"Connecting to {address}")
    try:
        run_client(random.randint(0, 2**31 - 1), address, args[1:])
    except HelpRequested:
        return 0
    except ArgumentError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    return 0