from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .db import ensure_sqlite_directory
from .immutability import register_immutability_listeners
from .logging_config import configure_logging
from .routers import auth, boms, health, production, stock

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    ensure_sqlite_directory(settings.DATABASE_URL)
    yield


register_immutability_listeners()

app = FastAPI(title="Stockmate API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(boms.router)
app.include_router(production.router)
app.include_router(stock.router)


@app.get("/")
def root():
    return {"status": "ok"}
