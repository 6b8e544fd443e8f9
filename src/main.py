"""
Main module for the terminal chat client.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys
import threading

from src.chat_service import ChatService, ConversationEntry
from src.config import Configuration
from src.llm.client import AiChatClient
from src.logging_utils import configure_logging

EXIT_COMMANDS = {"/quit", "/exit"}


class AnswerPrinter:
    """Writes a growing answer to a text stream without repeating text."""

    def __init__(self, out=None) -> None:
        self.out = out if out is not None else sys.stdout
        self._shown = ""

    def show(self, entry: ConversationEntry) -> None:
        text = entry.answer
        if text.startswith(self._shown):
            self.out.write(text[len(self._shown):])
        else:
            # final answer replaced the streamed tokens
            self.out.write("\n" + text)
        self._shown = text
        if not entry.is_loading:
            self.out.write("\n")
            self._shown = ""
        self.out.flush()


async def read_line(prompt: str) -> str:
    """
    Read one line from stdin without tying up the default executor.

    ``input`` runs on a daemon thread that the loop never joins, so a
    shutdown while the user is idle at the prompt does not hang.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def deliver(result: str | None, error: BaseException | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def worker() -> None:
        try:
            line = input(prompt)
        except Exception as e:
            result, error = None, e
        else:
            result, error = line, None
        with contextlib.suppress(RuntimeError):  # loop already closed
            loop.call_soon_threadsafe(deliver, result, error)

    threading.Thread(target=worker, daemon=True, name="stdin-reader").start()
    return await future


async def run_chat_loop(service: ChatService, shutdown_event: asyncio.Event) -> None:
    """Read prompts from stdin until EOF, an exit command or shutdown."""
    printer = AnswerPrinter()

    while not shutdown_event.is_set():
        try:
            prompt = await read_line("> ")
        except EOFError:
            break

        if prompt.strip() in EXIT_COMMANDS:
            break

        async for entry in service.submit_prompt(prompt):
            if entry.is_loading and not entry.answer:
                continue
            printer.show(entry)


async def main() -> None:
    """Main entry point - terminal chat with graceful shutdown handling."""
    config = Configuration()

    logging_config = config.get_logging_config()
    configure_logging(logging_config["level"], logging_config["renderer"])

    shutdown_event = asyncio.Event()

    def signal_handler() -> None:
        """Handle shutdown signals gracefully."""
        logging.info("Received shutdown signal, initiating graceful shutdown...")
        shutdown_event.set()

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, signal_handler)

    async with AiChatClient.from_config(config) as client:
        service = ChatService(
            ChatService.ChatServiceConfig(
                client=client,
                fallback_error_message=config.get_fallback_error_message(),
            )
        )

        chat_task = asyncio.create_task(run_chat_loop(service, shutdown_event))
        done, pending = await asyncio.wait(
            [chat_task, asyncio.create_task(shutdown_event.wait())],
            return_when=asyncio.FIRST_COMPLETED,
        )

        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if chat_task in done:
            exception = chat_task.exception()
            if exception is not None:
                raise exception

    logging.info("Chat client shutdown complete")


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()
