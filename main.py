import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.api.applications import router as applications_router
from app.api.auth import router as auth_router
from app.api.chat import router as chat_router
from app.api.comments import router as comments_router
from app.api.events import router as events_router
from app.api.gamification import router as gamification_router
from app.api.groups import router as groups_router
from app.api.home import router as home_router
from app.api.mail import router as mail_router
from app.api.news import router as news_router
from app.api.notifications import router as notifications_router
from app.api.polls import router as polls_router
from app.api.taxonomy import router as taxonomy_router
from app.api.users import router as users_router
from app.core.config import API_PREFIX, CORS_ORIGINS, LOG_LEVEL
from app.core.db import SessionLocal
from app.core.errors import register_exception_handlers
from app.core.tasks import shutdown_task_queue
from app.services.gamification import seed_achievements
import app.core.events  # registers the slug listeners

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    with SessionLocal() as db:
        seed_achievements(db)
    logger.info("🚀 Intranet portal started")
    yield
    shutdown_task_queue()
    logger.info("Intranet portal stopped")


app = FastAPI(title="Intranet Portal", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# API routes
app.include_router(auth_router, prefix=f"{API_PREFIX}/auth", tags=["Auth"])
app.include_router(users_router, prefix=f"{API_PREFIX}/users", tags=["Users"])
app.include_router(groups_router, prefix=f"{API_PREFIX}/groups", tags=["Groups"])
app.include_router(applications_router, prefix=f"{API_PREFIX}/applications", tags=["Applications"])
app.include_router(news_router, prefix=f"{API_PREFIX}/news", tags=["News"])
app.include_router(events_router, prefix=f"{API_PREFIX}/events", tags=["Events"])
app.include_router(polls_router, prefix=f"{API_PREFIX}/polls", tags=["Polls"])
app.include_router(comments_router, prefix=f"{API_PREFIX}/comments", tags=["Comments"])
app.include_router(taxonomy_router, prefix=f"{API_PREFIX}/taxonomy", tags=["Taxonomy"])
app.include_router(notifications_router, prefix=f"{API_PREFIX}/notifications", tags=["Notifications"])
app.include_router(gamification_router, prefix=f"{API_PREFIX}/gamification", tags=["Gamification"])
app.include_router(chat_router, prefix=f"{API_PREFIX}/chat", tags=["Chat"])
app.include_router(mail_router, prefix=f"{API_PREFIX}/mail", tags=["Mail"])
app.include_router(home_router, prefix=API_PREFIX, tags=["Home"])


@app.get("/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8855, reload=True)
