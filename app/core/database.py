from supabase import create_client, Client
from postgrest.exceptions import APIError
from app.core.config import settings

_supabase_client: Client | None = None

# Postgres SQLSTATE for a UNIQUE constraint violation
UNIQUE_VIOLATION = "23505"


def get_supabase() -> Client:
    global _supabase_client
    if _supabase_client is None:
        _supabase_client = create_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY,
        )
    return _supabase_client


def first_row(result) -> dict | None:
    """Return the first row of a query result, or None when it is empty."""
    if result is None or not result.data:
        return None
    return result.data[0]


def is_unique_violation(error: APIError) -> bool:
    return str(getattr(error, "code", "") or "") == UNIQUE_VIOLATION


def next_student_sequence(db: Client) -> int:
    """
    Pull the next value of the store-owned student number sequence.
    The sequence is the only source of truth; there is no read-max fallback.
    """
    result = db.rpc("get_next_student_number", {}).execute()
    value = result.data
    if isinstance(value, list):
        value = value[0] if value else None
    if value is None:
        raise RuntimeError("Student number sequence returned no value")
    return int(value)
