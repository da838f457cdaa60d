import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query

from app.core.errors import AuthorizationError, ConflictError, StoreError, ValidationError
from app.core.identity import Identity
from app.models.associations import poll_target_groups
from app.models.poll import Poll, PollOption, PollVote
from app.services.content import ContentRepository
from app.services.gamification import award_xp_job
from app.services.visibility import TargetBinding

logger = logging.getLogger(__name__)

MIN_OPTIONS = 2
MAX_OPTIONS = 10


class PollRepository(ContentRepository):
    model = Poll
    binding = TargetBinding(model=Poll, link_table=poll_target_groups, link_column=poll_target_groups.c.poll_id)
    entity = "poll"
    content_type = "poll"
    search_columns = (Poll.title, Poll.description)
    # Someone outside the target groups must not learn the poll exists
    hide_forbidden = True
    publish_action = "poll_create"

    def apply_filters(self, query: Query, filters: dict) -> Query:
        now = datetime.utcnow()
        if filters.get("active") is True:
            query = query.filter(
                Poll.is_active.is_(True),
                (Poll.start_date.is_(None)) | (Poll.start_date <= now),
                (Poll.end_date.is_(None)) | (Poll.end_date > now),
            )
        elif filters.get("active") is False:
            query = query.filter((Poll.is_active.is_(False)) | (Poll.end_date <= now))
        return query

    def apply_fields(self, item: Poll, data: dict, creating: bool) -> None:
        options = data.pop("options", None)
        if creating and options is None:
            raise ValidationError(f"A poll needs between {MIN_OPTIONS} and {MAX_OPTIONS} options", "invalid_options")
        if options is not None:
            cleaned = [text.strip() for text in options if text and text.strip()]
            if not MIN_OPTIONS <= len(cleaned) <= MAX_OPTIONS:
                raise ValidationError(f"A poll needs between {MIN_OPTIONS} and {MAX_OPTIONS} options", "invalid_options")
            if not creating and self._vote_count(item.id):
                raise ConflictError("Options cannot change once votes have been cast", "poll_has_votes")
            item.options = [PollOption(text=text, order=i) for i, text in enumerate(cleaned)]
        super().apply_fields(item, data, creating)
        if item.start_date and item.end_date and item.end_date <= item.start_date:
            raise ValidationError("End date must be after start date", "invalid_dates")

    def _vote_count(self, poll_id: int) -> int:
        return self.db.query(func.count(PollVote.id)).filter(PollVote.poll_id == poll_id).scalar() or 0

    def has_voted(self, poll_id: int, user_id: int) -> bool:
        return (
            self.db.query(PollVote.id).filter(PollVote.poll_id == poll_id, PollVote.user_id == user_id).first()
            is not None
        )

    def voted_poll_ids(self, user_id: int, poll_ids: List[int]) -> set:
        if not poll_ids:
            return set()
        rows = self.db.query(PollVote.poll_id).filter(PollVote.user_id == user_id, PollVote.poll_id.in_(poll_ids))
        return {row[0] for row in rows}

    @staticmethod
    def is_open(poll: Poll, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        if not poll.is_active:
            return False
        if poll.start_date and now < poll.start_date:
            return False
        if poll.end_date and now >= poll.end_date:
            return False
        return True

    def vote(self, identity: Identity, poll_id: int, option_ids: List[int]) -> None:
        poll = self.get(identity, item_id=poll_id)
        now = datetime.utcnow()
        if not poll.is_active:
            raise ValidationError("This poll is closed", "poll_closed")
        if poll.start_date and now < poll.start_date:
            raise ValidationError("Voting has not started yet", "poll_not_started")
        if poll.end_date and now >= poll.end_date:
            raise ValidationError("Voting has ended", "poll_ended")

        chosen = set(option_ids)
        if not chosen:
            raise ValidationError("Pick at least one option", "invalid_options")
        if len(chosen) > 1 and not poll.allow_multiple:
            raise ValidationError("This poll accepts a single choice", "single_choice_only")
        valid = {option.id for option in poll.options}
        if not chosen <= valid:
            raise ValidationError("Unknown option for this poll", "invalid_options")
        if self.has_voted(poll.id, identity.user_id):
            raise ConflictError("You have already voted in this poll", "already_voted")

        try:
            for option_id in sorted(chosen):
                self.db.add(PollVote(poll_id=poll.id, option_id=option_id, user_id=identity.user_id))
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError("Could not record the vote") from exc

        if self.tasks is not None:
            self.tasks.enqueue("award_xp", award_xp_job, identity.user_id, "poll_vote", poll.id)

    def close(self, identity: Identity, poll_id: int) -> Poll:
        poll = self.find(poll_id)
        if not (identity.is_admin or poll.author_id == identity.user_id):
            raise AuthorizationError("Only the author or an admin can close this poll", "cannot_close_poll")
        poll.is_active = False
        if poll.end_date is None or poll.end_date > datetime.utcnow():
            poll.end_date = datetime.utcnow()
        self.db.commit()
        self.db.refresh(poll)
        return poll

    def results(self, identity: Identity, poll_id: int) -> Dict:
        poll = self.get(identity, item_id=poll_id)
        privileged = identity.is_admin or poll.author_id == identity.user_id
        voted = self.has_voted(poll.id, identity.user_id)
        closed = not self.is_open(poll)

        if not privileged:
            if poll.show_results == "after_vote" and not (voted or closed):
                raise AuthorizationError("Results are shown after you vote", "results_hidden")
            if poll.show_results == "after_close" and not closed:
                raise AuthorizationError("Results are shown when the poll closes", "results_hidden")

        counts = dict(
            self.db.query(PollVote.option_id, func.count(PollVote.id))
            .filter(PollVote.poll_id == poll.id)
            .group_by(PollVote.option_id)
            .all()
        )
        total_voters = self.db.query(func.count(func.distinct(PollVote.user_id))).filter(PollVote.poll_id == poll.id).scalar() or 0
        total_votes = sum(counts.values())

        options = []
        for option in poll.options:
            votes = counts.get(option.id, 0)
            entry = {
                "id": option.id,
                "text": option.text,
                "votes": votes,
                "percentage": round(votes * 100.0 / total_votes, 1) if total_votes else 0.0,
            }
            if privileged and not poll.is_anonymous:
                entry["voters"] = [
                    {"id": vote.user.id, "username": vote.user.username}
                    for vote in self.db.query(PollVote).filter(PollVote.option_id == option.id).order_by(PollVote.id)
                    if vote.user is not None
                ]
            options.append(entry)

        return {
            "poll_id": poll.id,
            "total_votes": total_votes,
            "total_voters": total_voters,
            "has_voted": voted,
            "is_closed": closed,
            "options": options,
        }
