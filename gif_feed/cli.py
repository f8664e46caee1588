"""Command-line interface for browsing the GIF feed."""

import asyncio
import json
import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from typing_extensions import Annotated

from gif_feed.collector.feed import FeedEngine
from gif_feed.config import Config
from gif_feed.reddit_client import RedditListingClient
from gif_feed.state import FeedState

app = typer.Typer(help="GIF feed - browse playable videos from a subreddit")

logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "WARNING", log_file: Optional[str] = None) -> None:
    """
    Set up logging configuration.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a rotating log file
    """
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "standard",
            "stream": "ext://sys.stderr",
        },
    }

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "standard",
            "filename": log_file,
            "maxBytes": 10485760,  # 10 MB
            "backupCount": 5,
            "encoding": "utf8",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
            },
        },
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": list(handlers),
                "level": log_level,
                "propagate": True,
            },
            "asyncio": {
                "level": "WARNING",
            },
            "aiohttp": {
                "level": "WARNING",
            },
        },
    })


def format_item(index: int, item: Any) -> str:
    return f"{index:>3}. {item.title} ({item.author}, {item.comments} comments)\n     {item.src}"


async def run_browse(config: Config, subreddit: Optional[str], pages: int) -> FeedState:
    """
    Load the feed for a subreddit and request `pages` pages in total.

    Returns:
        The final feed state
    """
    async with RedditListingClient(config) as client:
        engine = FeedEngine(client, config.feed)
        try:
            engine.start(subreddit)
            await engine.wait_idle()

            for _ in range(pages - 1):
                if not engine.request_more():
                    break
                await engine.wait_idle()

            return engine.state
        finally:
            await engine.aclose()


@app.command()
def browse(
    subreddit: Annotated[Optional[str], typer.Argument(help="Subreddit to browse")] = None,
    pages: Annotated[int, typer.Option("--pages", "-p", min=1, help="Number of pages to load")] = 1,
    config_path: Annotated[str, typer.Option("--config", "-c", help="Path to YAML config")] = "config.yaml",
    as_json: Annotated[bool, typer.Option("--json", help="Print items as JSON lines")] = False,
    log_level: Annotated[str, typer.Option("--log-level", "-l", help="Logging level")] = "WARNING",
    log_file: Annotated[Optional[str], typer.Option("--log-file", help="Rotating log file")] = None,
) -> None:
    """Print the playable items of a subreddit."""
    setup_logging(log_level.upper(), log_file)

    config = Config.from_files(config_path)
    errors = config.validate()
    if errors:
        for error in errors:
            typer.echo(f"Config error: {error}", err=True)
        raise typer.Exit(code=2)

    state = asyncio.run(run_browse(config, subreddit, pages))

    for index, item in enumerate(state.items, start=1):
        if as_json:
            typer.echo(json.dumps(item.model_dump()))
        else:
            typer.echo(format_item(index, item))

    if state.error:
        typer.echo(f"Error: {state.error}", err=True)
        if not state.items:
            raise typer.Exit(code=1)


@app.command("check-config")
def check_config(
    config_path: Annotated[str, typer.Option("--config", "-c", help="Path to YAML config")] = "config.yaml",
) -> None:
    """Validate the configuration file and environment."""
    config = Config.from_files(config_path)
    errors = config.validate()

    if errors:
        for error in errors:
            typer.echo(f"Config error: {error}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"Configuration OK: r/{config.feed.default_subreddit} via {config.http.base_url}, "
        f"{config.feed.page_quota} items per page"
    )


if __name__ == "__main__":
    app()
