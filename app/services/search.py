import re
from sqlalchemy import or_
from app.core.errors import ValidationError

MIN_SEARCH_LENGTH = 2
MAX_SEARCH_LENGTH = 100

FORBIDDEN_SEQUENCES = ("<", ">", "&", '"', "'", "(", ")", "=", "+", ";", "--", "/*", "*/")
FORBIDDEN_WORDS = re.compile(r"\b(union|select|insert|update|delete|drop|create)\b", re.IGNORECASE)


def validate_search(term: str | None) -> str | None:
    """Return the cleaned search term, None when there is nothing to search for."""
    if term is None:
        return None
    term = term.strip()
    if not term:
        return None
    if len(term) < MIN_SEARCH_LENGTH:
        raise ValidationError(f"Search term must be at least {MIN_SEARCH_LENGTH} characters", "invalid_search")
    if len(term) > MAX_SEARCH_LENGTH:
        raise ValidationError(f"Search term must be at most {MAX_SEARCH_LENGTH} characters", "invalid_search")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in term):
        raise ValidationError("Search term contains control characters", "invalid_search")
    if any(seq in term for seq in FORBIDDEN_SEQUENCES) or FORBIDDEN_WORDS.search(term):
        raise ValidationError("Search term contains forbidden characters", "invalid_search")
    return term


def like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def search_clause(term: str, *columns):
    """Case-insensitive substring match over any of ``columns``."""
    pattern = like_pattern(term)
    return or_(*(column.ilike(pattern, escape="\\") for column in columns))
