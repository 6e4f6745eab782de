import asyncio
import socket
import logging
from typing import Any

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from agent.errors import BridgeError, ValidationError, error_kind
from agent.graph import run_generation
from config.settings import HOST, PORT, LOG_LEVEL

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="UI Generation Bridge")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class PromptRequest(BaseModel):
    prompt: str

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must be a non-empty string")
        return value


def error_response(exc: BaseException, status_code: int = 500) -> JSONResponse:
    message = str(exc) or "Unknown error occurred"
    return JSONResponse({"error": message, "kind": error_kind(exc)}, status_code=status_code)


@app.exception_handler(RequestValidationError)
async def handle_request_validation(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body') or 'body'}: {err.get('msg')}"
        for err in exc.errors()
    )
    return error_response(ValidationError(details or "invalid request body"), status_code=400)


@app.post("/api/prompt")
async def submit_prompt(req: PromptRequest) -> Any:
    loop = asyncio.get_running_loop()
    try:
        # Sync Playwright must run off the event loop; each request gets its own driver
        return await loop.run_in_executor(None, run_generation, req.prompt)
    except ValidationError as e:
        return error_response(e, status_code=400)
    except BridgeError as e:
        logger.error(f"Prompt request failed ({e.kind}): {e}")
        return error_response(e)
    except Exception as e:
        logger.exception("Unexpected error while handling prompt request")
        return error_response(e)


@app.get("/health")
async def health():
    return {"status": "ok"}


def find_available_port(preferred: int, host: str = HOST, attempts: int = 20) -> int:
    """Returns `preferred` if it can be bound, else the next free port after it."""
    for port in range(preferred, preferred + attempts):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((host, port))
            except OSError:
                logger.info(f"Port {port} is in use, trying {port + 1}")
                continue
            return port
    raise RuntimeError(f"No free port found in range {preferred}-{preferred + attempts - 1}")


if __name__ == "__main__":
    port = find_available_port(PORT)
    logger.info(f"Server running at http://{HOST}:{port}")
    uvicorn.run(app, host=HOST, port=port)
