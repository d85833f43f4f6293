"""
API layer - FastAPI application for the weather tool-calling agent.
Following SOLID:
- Single Responsibility - Controllers are thin, delegate to the agent.
- Dependency Inversion - Controllers receive the agent through dependencies.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.agents import router as agents_router
from config import AgentConfig
from domain.exceptions import GENERIC_ERROR_MESSAGE, WeatherAgentError
from domain.models import WeatherResponse
from infrastructure.llm_client import OpenAIChatProvider, create_openai_client
from services.agent import WeatherAgent
from services.tools import build_tool_registry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - build the provider client and agent once."""
    logger.info("Initializing application...")

    config = AgentConfig.from_env()
    config.require_api_key()
    logging.getLogger().setLevel(config.log_level)

    client = create_openai_client(config.provider)
    provider = OpenAIChatProvider(client, config.provider)
    registry = build_tool_registry()

    app.state.agent_config = config
    app.state.weather_agent = WeatherAgent(provider=provider, registry=registry, config=config)

    logger.info(
        f"Application initialized successfully "
        f"(environment={config.environment}, model={config.provider.model}, tool_choice={config.tool_choice})"
    )

    yield

    logger.info("Application shutting down...")
    await provider.close()


# Create FastAPI app
app = FastAPI(
    title="Weather Agent",
    description="LLM tool-calling demo: the model picks a local weather tool and returns a structured answer",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(agents_router)


def _envelope(status_code: int, message: str, **extra) -> JSONResponse:
    content = WeatherResponse.failure(message).to_wire()
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def _summarize_validation_errors(errors) -> str:
    parts = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    """Reject malformed request bodies before they reach the agent."""
    errors = jsonable_encoder(exc.errors())
    logger.info(f"Validation error on {request.url.path}: {errors}")
    return _envelope(422, _summarize_validation_errors(errors), details=errors)


@app.exception_handler(StarletteHTTPException)
async def handle_http_exception(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions (404 for unknown routes) with the response envelope."""
    message = "Not found" if exc.status_code == 404 else str(exc.detail)
    return _envelope(exc.status_code, message)


@app.exception_handler(WeatherAgentError)
async def handle_agent_error(request: Request, exc: WeatherAgentError):
    logger.error(f"Weather agent error: {exc.message}", exc_info=True)
    return _envelope(exc.status_code, exc.public_message)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    """Catch-all: log the traceback, return a generic message."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return _envelope(500, GENERIC_ERROR_MESSAGE)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Weather Agent API is running"}


if __name__ == "__main__":
    import uvicorn
    settings = AgentConfig.from_env()
    uvicorn.run(app, host=settings.host, port=settings.port)
