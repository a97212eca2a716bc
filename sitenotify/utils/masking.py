"""Helpers for keeping secrets out of log output."""
from typing import Optional


def mask_token(token: Optional[str], visible: int = 16) -> str:
    """Return the first ``visible`` characters of a token followed by an ellipsis."""
    if not token:
        return "<none>"
    if len(token) <= visible:
        return f"{token[:4]}..."
    return f"{token[:visible]}..."
