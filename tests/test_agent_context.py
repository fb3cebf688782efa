"""Tests for assembling provider digests into the agent's instructions."""
from unittest.mock import AsyncMock

import pytest
from agents import RunContextWrapper

from feed_lens.agent.context import AgentContext, default_providers
from feed_lens.agent.loop import BASE_INSTRUCTIONS, context_instructions, gather_context, main_agent
from feed_lens.providers.base import CachedProvider, ContextProvider
from feed_lens.providers.defillama import DefiLlamaProvider
from feed_lens.providers.timeline import KolTimelineProvider
from feed_lens.providers.trading import TradingDeskProvider

pytestmark = pytest.mark.asyncio


class StubProvider:
    def __init__(self, name, text):
        self.name = name
        self.get = AsyncMock(return_value=text)
        self.aclose = AsyncMock()


class ExplodingProvider(CachedProvider):
    name = "exploding"
    fallback = "exploding is down"

    async def render(self, settings):
        raise RuntimeError("bug in render")


async def test_gather_context_sections_in_provider_order():
    """Digests are joined as titled sections in provider order."""
    providers = [StubProvider("defillama", "pools..."), StubProvider("kol-timeline", "tweets...")]
    settings = {}.get
    text = await gather_context(providers, settings)
    assert text == "## defillama\npools...\n\n## kol-timeline\ntweets..."
    providers[0].get.assert_awaited_once_with(settings)


async def test_instructions_append_live_context():
    """Dynamic instructions carry the base prompt followed by live context."""
    ctx = AgentContext(providers=[StubProvider("kira-trading", "portfolio...")], settings={}.get)
    instructions = await context_instructions(RunContextWrapper(context=ctx), main_agent)
    assert instructions.startswith(BASE_INSTRUCTIONS)
    assert "# Live context" in instructions
    assert "## kira-trading\nportfolio..." in instructions


async def test_unexpected_provider_error_becomes_fallback():
    """A bug in render still yields the fallback string."""
    text = await gather_context([ExplodingProvider()], {}.get)
    assert text == "## exploding\nexploding is down"


async def test_default_providers_are_isolated():
    """Each default provider owns its cache and HTTP client."""
    providers = default_providers()
    assert [type(p) for p in providers] == [DefiLlamaProvider, TradingDeskProvider, KolTimelineProvider]
    assert all(isinstance(p, ContextProvider) for p in providers)
    caches = {id(p.cache) for p in providers}
    assert len(caches) == 3


async def test_aclose_closes_every_provider():
    """Closing the context closes every provider."""
    providers = [StubProvider("a", ""), StubProvider("b", "")]
    ctx = AgentContext(providers=providers, settings={}.get)
    await ctx.aclose()
    for provider in providers:
        provider.aclose.assert_awaited_once()
