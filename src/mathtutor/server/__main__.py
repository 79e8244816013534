"""MathTutor JSON-lines server entry point.

Usage: python -m mathtutor.server

Reads JSON requests from stdin (one per line), writes JSON responses and
``attemptRecorded`` notifications to stdout. All logging goes to stderr to
keep the protocol clean.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Callable

from mathtutor.engine.quiz_runner import InvalidTransition

from .handler import ServerHandler
from .protocol import Notification, ProtocolError, Request, Response

logger = logging.getLogger("mathtutor.server")

# Caller mistakes: reported back without a traceback in the log
CLIENT_ERRORS = (ValueError, KeyError, InvalidTransition)


async def serve(
    handler: ServerHandler,
    reader: asyncio.StreamReader,
    write_line: Callable[[str], None],
) -> None:
    """Answer requests from *reader* until it reaches EOF."""
    while True:
        line = await reader.readline()
        if not line:
            break  # stdin closed

        line_str = line.decode("utf-8", errors="replace").strip()
        if not line_str:
            continue

        try:
            req = Request.from_line(line_str)
        except ProtocolError as e:
            logger.warning("mathtutor-server: %s", e)
            write_line(Response.failure(0, e).to_json_line())
            continue

        try:
            result = await handler.dispatch({"method": req.method, "params": req.params})
            resp = Response(id=req.id, result=result)
        except CLIENT_ERRORS as e:
            logger.warning("mathtutor-server: %s rejected: %s", req.method, e)
            resp = Response.failure(req.id, e)
        except Exception as e:
            logger.exception("mathtutor-server: error handling %s", req.method)
            resp = Response.failure(req.id, e)

        write_line(resp.to_json_line())


async def main() -> None:
    loop = asyncio.get_running_loop()

    def write_line(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    def write_notification(notification: Notification) -> None:
        write_line(notification.to_json_line())

    handler = ServerHandler(write_notification=write_notification)

    reader = asyncio.StreamReader()
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)

    logger.info("mathtutor-server: ready")
    await serve(handler, reader, write_line)


if __name__ == "__main__":
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(main())
