"""
FastAPI Router for the weather agent.

Endpoints:
- POST /agents/weather - Answer a weather question with the tool-calling agent
"""
import asyncio
import logging
from typing import Awaitable, TypeVar

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_agent_config, get_weather_agent
from config import AgentConfig
from domain.models import WeatherPromptRequest, WeatherResponse
from services.agent import WeatherAgent

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Non-standard status used by nginx for requests abandoned by the client
CLIENT_CLOSED_REQUEST = 499

router = APIRouter(prefix="/agents", tags=["agents"])


class ClientDisconnected(Exception):
    """Raised when the HTTP client went away before the agent finished."""


async def run_until_disconnected(request: Request, work: Awaitable[T], poll_interval: float) -> T:
    """
    Await ``work`` while watching the client connection.

    If the client disconnects first, ``work`` is cancelled (aborting any pending
    provider call) and ClientDisconnected is raised.
    """
    task = asyncio.ensure_future(work)
    disconnected = False

    async def watch_connection() -> None:
        nonlocal disconnected
        while not task.done():
            if await request.is_disconnected():
                disconnected = True
                logger.warning("Client disconnected, cancelling weather agent run")
                task.cancel()
                return
            await asyncio.sleep(poll_interval)

    watcher = asyncio.ensure_future(watch_connection())
    try:
        return await task
    except asyncio.CancelledError:
        if disconnected:
            raise ClientDisconnected("Client disconnected before the answer was ready")
        raise
    finally:
        watcher.cancel()


@router.post(
    "/weather",
    response_model=WeatherResponse,
    responses={500: {"model": WeatherResponse, "description": "Provider or protocol failure"}}
)
async def get_current_weather(
    body: WeatherPromptRequest,
    request: Request,
    agent: WeatherAgent = Depends(get_weather_agent),
    config: AgentConfig = Depends(get_agent_config)
):
    """
    Answer a weather question.

    The model picks a tool (get_weather or return_error), the tool runs locally,
    and a second model call writes the final WeatherResponse.
    """
    try:
        outcome = await run_until_disconnected(request, agent.run(body.prompt), config.disconnect_poll_interval)
    except ClientDisconnected as e:
        return JSONResponse(
            status_code=CLIENT_CLOSED_REQUEST,
            content=WeatherResponse.failure(str(e)).to_wire()
        )

    if outcome.failed:
        logger.info(f"Weather request failed: {outcome.error_kind}")
        return JSONResponse(status_code=500, content=outcome.response.to_wire())

    return outcome.response
