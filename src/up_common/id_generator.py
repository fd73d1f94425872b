"""Time-ordered string IDs for business rows (bids, intents, offers).

Layout: <prefix>_<12 hex ms timestamp><8 hex random>. Lexicographic order
follows creation time, which keyset pagination (`id < :cursor`) relies on.
"""

import secrets
import time


def generate_id(prefix: str) -> str:
    ts_ms = int(time.time() * 1000)
    return f"{prefix}_{ts_ms:012x}{secrets.token_hex(4)}"
