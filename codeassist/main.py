"""
codeassist Backend - FastAPI Application Entry Point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import assist, chat, config
from .services.config_manager import ConfigManager

logger = logging.getLogger("codeassist")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - startup and shutdown logic"""
    logger.info("Starting codeassist backend...")
    config_manager = ConfigManager.get_instance()
    logger.info("Active provider: %s", config_manager.get("provider"))

    yield

    for stream in list(chat.active_streams.values()):
        stream.cancel()
    logger.info("Shutting down codeassist backend...")


app = FastAPI(
    title="codeassist Backend",
    description="AI assistant response pipeline for editor plugins",
    version="1.0.0",
    lifespan=lifespan,
)

# Editor plugins connect from localhost
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat.router, prefix="/api/chat", tags=["chat"])
app.include_router(assist.router, prefix="/api/assist", tags=["assist"])
app.include_router(config.router, prefix="/api/config", tags=["config"])


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "codeassist-backend"}


def run() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    server = ConfigManager.get_instance().get("server", {})
    uvicorn.run(app, host=server.get("host", "127.0.0.1"), port=int(server.get("port", 8000)))


if __name__ == "__main__":
    run()
