"""Mily command-line entry point."""

import argparse
import asyncio
import logging

from mily.agent import Agent
from mily.config import Settings, settings
from mily.errors import FetchError, PolicyViolation
from mily.scheduler import LearnScheduler
from mily.web import fetch_text

logger = logging.getLogger(__name__)

EXIT_WORDS = {"exit", "quit"}


async def run_repl(cfg: Settings) -> None:
    """Interactive text loop. ``exit`` or ``quit`` leaves."""
    agent = Agent(cfg)
    print("MilyAI ready. Type 'exit' to quit.")
    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        msg = line.strip()
        if msg.lower() in EXIT_WORDS:
            break
        if not msg:
            continue
        print(await agent.respond(msg))


async def run_browse(cfg: Settings, url: str) -> int:
    """Fetch *url*, learn from it and print the summary."""
    agent = Agent(cfg)
    try:
        text = await fetch_text(cfg, url)
    except (FetchError, PolicyViolation) as exc:
        logger.error("Cannot learn from %s: %s", url, exc)
        return 1
    summary = await agent.learn(url, text)
    print(f"Learned from {url}:\n{summary}")
    return 0


async def run_learn(cfg: Settings) -> int:
    """Learn from ``learn_urls`` on a fixed interval until interrupted."""
    agent = Agent(cfg)
    scheduler = LearnScheduler(agent, cfg)
    if not scheduler.urls:
        print("No learn_urls configured (set MILYAI_LEARN_URLS)")
        return 0

    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.stop()
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mily", description="MilyAI: personal conversational agent")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Interactive text assistant (default)")
    browse = sub.add_parser("browse", help="Fetch a URL, summarize and learn")
    browse.add_argument("url")
    sub.add_parser("learn", help="Periodically learn from configured URLs")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run the selected command."""
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )

    try:
        if args.command == "browse":
            return asyncio.run(run_browse(settings, args.url))
        if args.command == "learn":
            return asyncio.run(run_learn(settings))
        asyncio.run(run_repl(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
