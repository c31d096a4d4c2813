"""
02_sse_server.py - Serve runs as Server-Sent Events with FastAPI

Run:
    OPENAI_API_KEY=sk-xxx uvicorn examples.02_sse_server:app
    curl -N "localhost:8000/run?task=Tell+me+a+joke"
"""

from fastapi import FastAPI
from flowstream import AgentContext, FlowConfig, StreamingFlowExecutor
from flowstream.llm import LiteLLMClient
from flowstream.streaming import sse_response

config = FlowConfig.from_dict({
    "loop": {"model": "gpt-4o-mini", "max_iterations": 3},
    "stream": {"keepalive_seconds": 10},
    "llm": {"provider": "openai", "model": "gpt-4o-mini"},
})

app = FastAPI()


@app.get("/run")
async def run(task: str):
    context = AgentContext(
        client=LiteLLMClient(config=config.llm),
        task=task,
        config=config.loop,
    )
    executor = StreamingFlowExecutor(config=config.stream)
    return sse_response(executor.stream_sse(context))
