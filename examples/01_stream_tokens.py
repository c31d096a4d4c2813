"""
01_stream_tokens.py - Stream a tool-using run to the terminal
"""

import asyncio
from flowstream import AgentContext, LoopConfig, StreamingFlowExecutor, EventType, tool
from flowstream.llm import LiteLLMClient


@tool
def add(a: int, b: int) -> str:
    """Add two integers"""
    return str(a + b)


async def main():
    client = LiteLLMClient(model="gpt-4o-mini", provider_name="openai")
    context = AgentContext(
        client=client,
        task="What is 19 + 23? Use the add tool.",
        config=LoopConfig(model="gpt-4o-mini", max_iterations=4),
        tools=[add],
    )

    async for event in StreamingFlowExecutor().stream(context):
        if event.is_token():
            print(event.data["token"], end="", flush=True)
        elif event.type == EventType.TOOL_COMPLETED:
            print(f"\n[{event.data['tool']}] -> {event.data['result']}")
        elif event.is_progress():
            print(f"\n({event.data['percent']:.0f}%)")

    print(f"\nStatus: {context.status.value}")


if __name__ == "__main__":
    asyncio.run(main())
