from app.utils.envelope import extract_id, first_of, first_present, unwrap_envelope
from app.utils.security import read_token_claims, token_subject

__all__ = [
    "extract_id",
    "first_of",
    "first_present",
    "unwrap_envelope",
    "read_token_claims",
    "token_subject",
]
