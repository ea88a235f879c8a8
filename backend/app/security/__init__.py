# Security module
from app.security.auth import (
    create_access_token, decode_token, get_current_user, require_admin
)
from app.security.policy import can_mutate, ensure_can_mutate

__all__ = [
    'create_access_token', 'decode_token', 'get_current_user', 'require_admin',
    'can_mutate', 'ensure_can_mutate'
]
