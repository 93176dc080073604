import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

# 可选：仅当 GATEWAY_AGENT_LOAD_DOTENV=1 时从仓库根加载 .env
if os.environ.get("GATEWAY_AGENT_LOAD_DOTENV", "").strip() == "1":
    _env_file = Path(__file__).resolve().parent.parent.parent.parent / ".env"
    if _env_file.exists():
        from dotenv import load_dotenv
        load_dotenv(_env_file)

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.sessions import router as sessions_router
from app.api.tools import router as tools_router
from app.config import load_config
from app.services.agent import shutdown_orchestrator

config = load_config()

logging.basicConfig(
    level=getattr(logging, config.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await shutdown_orchestrator()


app = FastAPI(title="Gateway Agent", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(sessions_router, tags=["sessions"])
app.include_router(tools_router, tags=["tools"])


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "mockMode": config.mock_mode}
