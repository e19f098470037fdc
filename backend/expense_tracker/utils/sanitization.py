"""
Input sanitization utilities for persisted text fields.
Provides functions to clean string values before they are stored.
"""

import re
from typing import Optional

_CONTROL_CHARS = re.compile(r'[\x00-\x1F\x7F]')
_WHITESPACE_RUN = re.compile(r'\s{2,}')


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """Strip control characters, collapse whitespace runs and escape HTML."""
    if value is None:
        return None
    value = _CONTROL_CHARS.sub(' ', value)
    value = _WHITESPACE_RUN.sub(' ', value).strip()
    return value.replace('<', '&lt;').replace('>', '&gt;')
