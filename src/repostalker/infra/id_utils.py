"""Prefixed ID generation.

Every id this service mints uses a ``{prefix}_{random}`` format so its
origin is visible at a glance in logs and analytics:

- ``trace_L7wBd4Fj9Ks2``  one LLM-backed request
- ``gen_kJ3pW7mD4bNx``    one generation event inside that request

Provider-generated ids (``chatcmpl-xxx``, ``call_xxx``) are kept as-is.
"""

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits
_DEFAULT_LENGTH = 12  # ~71 bits of entropy

TRACE_PREFIX = "trace"
GENERATION_PREFIX = "gen"


def generate_id(prefix: str, length: int = _DEFAULT_LENGTH) -> str:
    """Generate a prefixed random ID.

    Args:
        prefix: Short descriptor (e.g. ``"trace"``, ``"gen"``).
        length: Number of random alphanumeric characters after the prefix.

    Returns:
        ``"{prefix}_{random}"`` string.
    """
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(length))
    return f"{prefix}_{suffix}"


def new_trace_id() -> str:
    return generate_id(TRACE_PREFIX)


def new_generation_id() -> str:
    return generate_id(GENERATION_PREFIX)
