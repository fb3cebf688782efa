import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler

from feed_lens.config import SettingsLookup, env_settings, file_settings

load_dotenv()
app = typer.Typer(help="Print the context digests fed to the agent.")
console = Console()

_state: dict = {"settings": env_settings()}


@app.callback()
def main(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML file of settings (falls back to env)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log cache and fetch activity"),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    if config:
        if not config.exists():
            console.print(f"[bold red]Error:[/] config file {config} not found")
            raise typer.Exit(1)
        _state["settings"] = file_settings(config)


def _settings() -> SettingsLookup:
    return _state["settings"]


async def _digest(provider) -> str:
    try:
        return await provider.get(_settings())
    finally:
        await provider.aclose()


def _show(provider, status: str) -> None:
    with console.status(f"[bold green]{status}"):
        text = asyncio.run(_digest(provider))
    console.print(text, markup=False, highlight=False)


@app.command()
def defi():
    """DefiLlama yield pools and protocol TVL."""
    from feed_lens.providers.defillama import DefiLlamaProvider
    _show(DefiLlamaProvider(), "Fetching DefiLlama pools and protocols...")


@app.command()
def trading(
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Trading desk API root"),
):
    """Trading desk portfolio (needs KIRA_TRADING_USERNAME / KIRA_TRADING_PASSWORD)."""
    from feed_lens.providers.trading import TradingDeskProvider
    _show(TradingDeskProvider(base_url), "Logging in and fetching portfolio...")


@app.command()
def kol(
    account: list[str] = typer.Option([], "--account", "-a", help="Account to track (repeatable); defaults to KOL_ACCOUNTS"),
    max_age_days: int = typer.Option(7, "--max-age-days", help="Drop posts older than this"),
    limit: int = typer.Option(10, "--limit", "-n", help="Posts shown in the digest"),
):
    """Recent posts from tracked X accounts (needs X_API_KEY / X_API_SECRET)."""
    from datetime import timedelta

    from feed_lens.providers.timeline import KolTimelineProvider
    provider = KolTimelineProvider(account, max_age=timedelta(days=max_age_days), limit=limit)
    _show(provider, "Fetching timelines...")


@app.command(name="all")
def all_digests():
    """Every digest, as the agent sees it."""
    from feed_lens.agent.context import AgentContext
    from feed_lens.agent.loop import gather_context

    async def run() -> str:
        ctx = AgentContext(settings=_settings())
        try:
            return await gather_context(ctx.providers, ctx.settings)
        finally:
            await ctx.aclose()

    with console.status("[bold green]Refreshing all providers..."):
        text = asyncio.run(run())
    console.print(text, markup=False, highlight=False)


@app.command()
def ask(question: str = typer.Argument(help="Question for the agent")):
    """Ask the agent one question with live context attached."""
    from feed_lens.agent.context import AgentContext
    from feed_lens.agent.loop import ask as run_ask

    async def run() -> None:
        ctx = AgentContext(settings=_settings())
        try:
            await run_ask(question, ctx)
        finally:
            await ctx.aclose()

    asyncio.run(run())


if __name__ == "__main__":
    app()
