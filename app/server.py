# app/server.py
import asyncio
import sys

import uvicorn
from loguru import logger

from app.core.config import settings


class Server:
    """
    Runs the app under uvicorn and turns unhandled faults into an orderly
    shutdown: stop accepting connections, let in-flight requests finish,
    then exit with status 1.
    """

    def __init__(self, host: str = "0.0.0.0", port: int = 8000):
        config = uvicorn.Config("app.main:app", host=host, port=port, log_level="info")
        self.server = uvicorn.Server(config)
        self.failed = False

    def shutdown(self, kind: str, exc: BaseException) -> None:
        logger.opt(exception=exc).critical(f"UNHANDLED {kind}! Shutting down...")
        self.failed = True
        self.server.should_exit = True

    def handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception") or RuntimeError(context.get("message", "unknown error"))
        self.shutdown("REJECTION", exc)

    def handle_exception(self, exc_type, exc, tb) -> None:
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        self.shutdown("EXCEPTION", exc)

    async def serve(self) -> None:
        asyncio.get_running_loop().set_exception_handler(self.handle_loop_exception)
        await self.server.serve()

    def run(self) -> int:
        sys.excepthook = self.handle_exception
        logger.info(f"Starting {settings.PROJECT_NAME} in {settings.ENVIRONMENT} mode")
        try:
            asyncio.run(self.serve())
        except Exception as exc:
            self.shutdown("EXCEPTION", exc)
        return 1 if self.failed else 0


def main() -> None:
    sys.exit(Server().run())


if __name__ == "__main__":
    main()
