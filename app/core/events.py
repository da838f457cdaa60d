from sqlalchemy import event
from app.models.event import Event
from app.models.news import News
from app.models.taxonomy import EventCategory, NewsCategory, Tag
from app.services.slugs import unique_slug
import logging

logger = logging.getLogger(__name__)

# model -> (attribute the slug is built from, fallback slug)
SLUGGED_MODELS = {
    News: ("title", "news"),
    Event: ("title", "event"),
    Tag: ("name", "tag"),
    NewsCategory: ("name", "category"),
    EventCategory: ("name", "category"),
}


def _assign_slug(mapper, connection, target):
    source, fallback = SLUGGED_MODELS[type(target)]
    text = target.slug or getattr(target, source)
    target.slug = unique_slug(connection, mapper.local_table, text, fallback=fallback)
    logger.debug(f"🔍 Slug {target.slug} assigned to new {type(target).__name__}")


for _model in SLUGGED_MODELS:
    event.listen(_model, "before_insert", _assign_slug)
