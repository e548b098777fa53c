"""End-to-end dispatch through a fake AI gateway."""

import httpx

from edge_ai_dispatch import DispatchClient, run_with_tools
from edge_ai_dispatch.config import ConfigLoader, EnvLoader
from edge_ai_dispatch.streaming.transformer import DoneEvent, TextEvent, encode_stream
from edge_ai_dispatch.tools import ToolRegistry
from edge_ai_dispatch.tools.mcp_bridge import create_mcp_tool_registry


async def test_reasoning_model_recovers_from_rate_limit(app_config, scripted_gateway, no_sleep):
    gateway = scripted_gateway(
        httpx.Response(429, text="Rate limit exceeded"),
        httpx.Response(200, json={"response": "<think>add</think>4"}),
    )
    async with DispatchClient(app_config, http_client=gateway.client(), sleep=no_sleep) as client:
        result = await client.generate("What is 2+2?", {"model": "qwen/reasoner", "retries": 1})

    assert result.attempts == 2
    assert result.response == "4"
    assert result.thinking == "add"
    assert result.provider == "qwen"
    assert len(no_sleep.calls) == 1
    assert [body["model"] for body in gateway.bodies] == ["qwen/reasoner", "qwen/reasoner"]


async def test_environment_configured_client_calls_gateway(scripted_gateway, completion_payload):
    config = ConfigLoader(
        env_loader=EnvLoader(
            environ={
                "CF_ACCOUNT_ID": "acct-env",
                "AI_GATEWAY_ID": "gw-env",
                "CF_AIG_TOKEN": "tok",
                "EDGE_AI_CLIENT__DEFAULT_MODEL": "groq/llama-3.3-70b-versatile",
            }
        )
    ).load_config()
    gateway = scripted_gateway(httpx.Response(200, json=completion_payload("hi there")))

    async with DispatchClient(config, http_client=gateway.client()) as client:
        result = await client.generate("hello")

    assert result.response == "hi there"
    [request] = gateway.requests
    assert str(request.url).startswith("https://gateway.ai.cloudflare.com/v1/acct-env/gw-env/")
    assert request.headers["cf-aig-authorization"] == "Bearer tok"
    assert gateway.bodies[0]["model"] == "groq/llama-3.3-70b-versatile"


async def test_tool_loop_over_gateway_with_mcp_tools(app_config, scripted_gateway, completion_payload, tool_call_payload):
    class WeatherServer:
        async def list_tools(self):
            return [
                {
                    "name": "weather",
                    "description": "Weather for a city",
                    "inputSchema": {
                        "type": "object",
                        "properties": {"city": {"type": "string"}},
                        "required": ["city"],
                    },
                }
            ]

        async def call_tool(self, name, arguments):
            return {"content": [{"type": "text", "text": f'{{"city": "{arguments["city"]}", "temp_c": 21}}'}]}

    registry: ToolRegistry = await create_mcp_tool_registry(WeatherServer())
    gateway = scripted_gateway(
        httpx.Response(
            200,
            json=completion_payload(
                None,
                tool_calls=[tool_call_payload("call_w", "weather", {"city": "Oslo"})],
                finish_reason="tool_calls",
            ),
        ),
        httpx.Response(200, json=completion_payload("It is 21°C in Oslo.")),
    )

    async with DispatchClient(app_config, http_client=gateway.client()) as client:
        result = await run_with_tools(client, "Weather in Oslo?", registry, {"model": "openai/gpt-4o"})

    assert result.completed
    assert result.response == "It is 21°C in Oslo."
    assert result.tool_calls[0].result == {"city": "Oslo", "temp_c": 21}

    first, second = gateway.bodies
    assert first["tools"][0]["function"]["name"] == "weather"
    tool_message = second["messages"][-1]
    assert tool_message == {
        "role": "tool",
        "tool_call_id": "call_w",
        "name": "weather",
        "content": '{"city": "Oslo", "temp_c": 21}',
    }


async def test_stream_can_be_reencoded_for_clients(app_config, scripted_gateway):
    body = (
        b'data: {"response": "Hi"}\n\n'
        b'data: {"response": " there"}\n\n'
        b"data: [DONE]\n\n"
    )
    gateway = scripted_gateway(httpx.Response(200, content=body))

    async with DispatchClient(app_config, http_client=gateway.client()) as client:
        events = [e async for e in client.generate_stream("hi", {"model": "@cf/meta/llama-3.1-8b-instruct"})]
        assert events == [TextEvent(data="Hi"), TextEvent(data=" there"), DoneEvent()]

        async def replay():
            for event in events:
                yield event

        encoded = b"".join([chunk async for chunk in encode_stream(replay())])

    assert encoded == (
        b'data: {"type":"text","data":"Hi"}\n\n'
        b'data: {"type":"text","data":" there"}\n\n'
        b'data: {"type":"done"}\n\n'
    )
