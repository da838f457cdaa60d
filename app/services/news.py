import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query

from app.core.errors import AuthorizationError, ValidationError
from app.core.identity import Identity
from app.models.associations import news_tags, news_target_groups
from app.models.news import REACTION_TYPES, News, NewsReaction, NewsRead
from app.models.taxonomy import NewsCategory
from app.services.content import ContentRepository
from app.services.gamification import award_xp_job
from app.services.visibility import TargetBinding

logger = logging.getLogger(__name__)


class NewsRepository(ContentRepository):
    model = News
    binding = TargetBinding(
        model=News,
        link_table=news_target_groups,
        link_column=news_target_groups.c.news_id,
        published_column=News.is_published,
        published_at_column=News.published_at,
    )
    entity = "news"
    content_type = "news"
    search_columns = (News.title, News.summary)
    publish_action = "news_publish"
    has_tags = True

    def apply_filters(self, query: Query, filters: dict) -> Query:
        if "category_id" in filters:
            query = query.filter(News.category_id == filters["category_id"])
        if "category" in filters:
            query = query.join(NewsCategory, NewsCategory.id == News.category_id).filter(
                NewsCategory.slug == filters["category"], NewsCategory.deleted_at.is_(None)
            )
        if "tag_id" in filters:
            query = query.filter(
                News.id.in_(select(news_tags.c.news_id).where(news_tags.c.tag_id == filters["tag_id"]))
            )
        if "is_pinned" in filters:
            query = query.filter(News.is_pinned == filters["is_pinned"])
        return query

    def order(self, query: Query) -> Query:
        return query.order_by(
            News.is_pinned.desc(),
            func.coalesce(News.published_at, News.created_at).desc(),
            News.id.desc(),
        )

    def apply_fields(self, item: News, data: dict, creating: bool) -> None:
        if data.get("category_id") is not None:
            category = self.db.get(NewsCategory, data["category_id"])
            if category is None or category.deleted_at is not None:
                raise ValidationError("Unknown news category", "unknown_category")
        if creating and not data.get("slug"):
            data.pop("slug", None)
        super().apply_fields(item, data, creating)
        # Publishing without a date means publishing now
        if item.is_published and item.published_at is None:
            item.published_at = datetime.utcnow()

    def toggle_pin(self, identity: Identity, item_id: int) -> News:
        if not (identity.is_admin or identity.is_editor):
            raise AuthorizationError("Only admins and editors can pin news", "cannot_pin")
        item = self.find(item_id)
        item.is_pinned = not item.is_pinned
        self.db.commit()
        self.db.refresh(item)
        return item

    def register_view(self, identity: Identity, item: News) -> None:
        """Count a view; the first read by a user also earns XP."""
        self.db.execute(update(News).where(News.id == item.id).values(views_count=News.views_count + 1))
        first_read = (
            self.db.query(NewsRead).filter(NewsRead.user_id == identity.user_id, NewsRead.news_id == item.id).first()
            is None
        )
        if first_read:
            self.db.add(NewsRead(user_id=identity.user_id, news_id=item.id))
        try:
            self.db.commit()
        except IntegrityError:
            # Concurrent first read from the same user
            self.db.rollback()
            first_read = False
        self.db.refresh(item)
        if first_read and self.tasks is not None:
            self.tasks.enqueue("award_xp", award_xp_job, identity.user_id, "news_read", item.id)

    # reactions

    def react(self, identity: Identity, item_id: int, reaction_type: str) -> dict:
        if reaction_type not in REACTION_TYPES:
            raise ValidationError(f"Unknown reaction {reaction_type}", "invalid_reaction")
        item = self.get(identity, item_id=item_id)
        reaction = (
            self.db.query(NewsReaction)
            .filter(NewsReaction.user_id == identity.user_id, NewsReaction.news_id == item.id)
            .first()
        )
        if reaction is None:
            self.db.add(NewsReaction(user_id=identity.user_id, news_id=item.id, reaction_type=reaction_type))
        else:
            reaction.reaction_type = reaction_type
        self.db.commit()
        return self.reactions(identity, item.id)

    def unreact(self, identity: Identity, item_id: int) -> dict:
        item = self.get(identity, item_id=item_id)
        self.db.query(NewsReaction).filter(
            NewsReaction.user_id == identity.user_id, NewsReaction.news_id == item.id
        ).delete(synchronize_session=False)
        self.db.commit()
        return self.reactions(identity, item.id)

    def reactions(self, identity: Identity, item_id: int) -> dict:
        rows = (
            self.db.query(NewsReaction.reaction_type, func.count(NewsReaction.id))
            .filter(NewsReaction.news_id == item_id)
            .group_by(NewsReaction.reaction_type)
            .all()
        )
        counts = {kind: 0 for kind in REACTION_TYPES}
        counts.update({kind: count for kind, count in rows})
        mine = (
            self.db.query(NewsReaction.reaction_type)
            .filter(NewsReaction.news_id == item_id, NewsReaction.user_id == identity.user_id)
            .scalar()
        )
        return {"counts": counts, "total": sum(counts.values()), "user_reaction": mine}
