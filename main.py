# main.py
import routes
from contextlib import asynccontextmanager
from util.enums import Environment, Color
from fastapi import FastAPI, Request
from starlette.middleware.cors import CORSMiddleware
from config.settings import settings
from config.http_client import close_backend_client, get_backend_client
from controller.controller_dependencies import get_auth_service
from fastapi.responses import JSONResponse
from model.api import ErrorResponse
from util.errors import AppError
from util.logger import init_logger


@asynccontextmanager
async def lifespan(fastApi: FastAPI):
    init_logger()
    print(f"{Color.GREEN}Initializing...{Color.RESET}")
    # Parse the token store up front so a broken configuration shows in the logs at boot.
    auth = get_auth_service()
    if auth.routing_mode is None:
        print(f"{Color.YELLOW}Token configuration invalid; /mcp will answer 500{Color.RESET}")
    await get_backend_client()
    print(f"{Color.BLUE}Server Started{Color.RESET}")

    try:
        yield
    finally:
        try:
            await close_backend_client()
        except Exception as e:
            print("Error closing backend client:", e)

        print(f"{Color.RED}Server Shutdown{Color.RESET}")


app: FastAPI = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.ALLOWED_ORIGIN],
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],  # Allowed HTTP Methods
    allow_headers=["Authorization", "Content-Type", "mcp-session-id", "Accept"],
    expose_headers=["mcp-session-id"],
    max_age=86400,
)


def _envelope(code: str, message: str) -> dict:
    return ErrorResponse(error=code, message=message).model_dump()


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content=_envelope(exc.code, str(exc.detail)),
        headers=exc.headers,
    )


routes.register_routes(app)


def cli() -> None:
    import uvicorn

    reload = settings.APP_ENV == Environment.DEV
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=reload)


if __name__ == "__main__":
    cli()
