from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

# Load environment variables early so downstream modules see them
from dotenv import load_dotenv
# Load .env first
load_dotenv()
# Then overlay .env.local if present (does not override already-set envs)
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env.local"), override=False)

from src.database import crud, models, database
from src.api import entities as entities_router
from src.api import relationships as relationships_router
from src.api import formations as formations_router
from src.api import stats as stats_router
from src.soulgraph.config import SoulGraphConfig
from src.soulgraph.engine import RelationshipEngine

logger = logging.getLogger(__name__)

# --- App Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    # On startup:
    # Initialize database tables
    async with database.engine.begin() as conn:
        await conn.run_sync(models.Base.metadata.create_all)

    engine = RelationshipEngine(config=SoulGraphConfig.from_env())
    # Rebuild the in-memory registry from stored rows
    async for db in database.get_db():
        try:
            records = await crud.get_entities(db, limit=None)
            for record in records:
                engine.registry.add(crud.to_entity(record))
        finally:
            await db.close()
    logger.info("Loaded %d entities from %s", len(engine.registry), database.DATABASE_URL)
    app.state.engine = engine

    yield

    # On shutdown:
    await database.engine.dispose()

# --- Main App Setup ---
app = FastAPI(lifespan=lifespan)

# CORS for local dev (Vite at 5173)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(entities_router.router)
app.include_router(relationships_router.router)
app.include_router(formations_router.router)
app.include_router(stats_router.router)

# --- Health Check ---
@app.get("/api/health")
async def health():
    engine = getattr(app.state, "engine", None)
    return {
        "status": "ok",
        "entities": len(engine.registry) if engine else 0,
        "databaseConfigured": bool(os.getenv("DATABASE_URL")),
    }
