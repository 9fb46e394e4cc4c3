"""Shared slowapi limiter and per-route limits (kept apart from main to avoid circular imports).

Every upstream OLS call made on behalf of a client counts against these limits;
set DISEASE_EXPLORER_NO_RATE_LIMIT=true to switch them off (tests do).
"""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

_enabled = os.environ.get("DISEASE_EXPLORER_NO_RATE_LIMIT", "").lower() != "true"

limiter = Limiter(key_func=get_remote_address, enabled=_enabled)

# Keystrokes are debounced server-side, so input can be posted far more often
# than lookups actually reach OLS.
SEARCH_LIMIT = os.environ.get("RATE_LIMIT_SEARCH", "120/minute")
HIERARCHY_LIMIT = os.environ.get("RATE_LIMIT_HIERARCHY", "60/minute")
SESSION_CREATE_LIMIT = os.environ.get("RATE_LIMIT_SESSIONS", "30/minute")
SESSION_INPUT_LIMIT = os.environ.get("RATE_LIMIT_INPUT", "600/minute")
