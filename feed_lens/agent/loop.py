"""Agent whose instructions carry every provider's digest, refreshed per turn."""

import asyncio

from agents import Agent, RunContextWrapper, Runner
from openai.types.responses import ResponseTextDeltaEvent
from rich.console import Console

from feed_lens.agent.context import AgentContext
from feed_lens.config import SettingsLookup
from feed_lens.providers.base import ContextProvider

console = Console()

BASE_INSTRUCTIONS = """You are an AI hedge fund assistant focused on delta-neutral crypto yield.
- Ground answers about yields, the desk's portfolio and market chatter in the
  live context below. Say so when a section reports that data is unavailable.
- Quote numbers as they appear in the context; do not invent figures.
- Always reply in English."""


async def gather_context(providers: list[ContextProvider], settings: SettingsLookup) -> str:
    """Fetch every provider's digest concurrently. Providers never raise."""
    digests = await asyncio.gather(*(p.get(settings) for p in providers))
    return "\n\n".join(f"## {p.name}\n{digest}" for p, digest in zip(providers, digests))


async def context_instructions(ctx: RunContextWrapper[AgentContext], agent: Agent[AgentContext]) -> str:
    live = await gather_context(ctx.context.providers, ctx.context.settings)
    return f"{BASE_INSTRUCTIONS}\n\n# Live context\n\n{live}"


main_agent = Agent[AgentContext](
    name="Feed Lens Assistant",
    instructions=context_instructions,
    model="gpt-4o",
)


async def ask(question: str, ctx: AgentContext) -> None:
    """Stream one answer to ``question`` onto the console."""
    result = Runner.run_streamed(main_agent, input=question, context=ctx)
    console.print("[bold cyan]Agent:[/]", end=" ")
    async for event in result.stream_events():
        if event.type == "raw_response_event" and isinstance(event.data, ResponseTextDeltaEvent):
            print(event.data.delta, end="", flush=True)
    print("\n")
