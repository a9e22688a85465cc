import hashlib


def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode()).hexdigest()


def session_id_from_token(token: str) -> str:
    """Storage id of a session; only the raw token holder can reproduce it"""
    return hash_secret(token)
