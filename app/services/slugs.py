import re
import time
from sqlalchemy import Table, select

MAX_SLUG_LENGTH = 100
MAX_SUFFIX_ATTEMPTS = 9999

_NON_ALNUM = re.compile(r"[\W_]+", re.UNICODE)


def slugify(text: str) -> str:
    """Lowercase, collapse every non-alphanumeric run into one hyphen, trim, cap at 100 chars."""
    slug = _NON_ALNUM.sub("-", (text or "").lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH].rstrip("-")


def _with_suffix(base: str, suffix: str) -> str:
    return base[: MAX_SLUG_LENGTH - len(suffix)].rstrip("-") + suffix


def unique_slug(connection, table: Table, text: str, fallback: str = "item", exclude_id: int | None = None) -> str:
    """
    Slug for ``text`` that no live row of ``table`` uses yet.

    Soft-deleted rows do not count, so their slugs can be reused.
    ``connection`` may be a Connection or a Session.
    """
    base = slugify(text) or fallback

    def taken(candidate: str) -> bool:
        stmt = select(table.c.id).where(table.c.slug == candidate, table.c.deleted_at.is_(None))
        if exclude_id is not None:
            stmt = stmt.where(table.c.id != exclude_id)
        return connection.execute(stmt.limit(1)).first() is not None

    if not taken(base):
        return base
    for n in range(1, MAX_SUFFIX_ATTEMPTS + 1):
        candidate = _with_suffix(base, f"-{n}")
        if not taken(candidate):
            return candidate
    return _with_suffix(base, f"-{int(time.time())}")
