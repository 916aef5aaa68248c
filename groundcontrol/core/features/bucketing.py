"""
Percentage rollout bucketing.

Uses consistent hashing so a subject always lands in the same bucket
for the same flag, across processes and restarts.
"""

import hashlib


def bucket_for(flag_code: str, distribution_key: str) -> int:
    """
    Stable bucket in [0, 100) for (flag, key).

    md5 of "{flag_code}:{distribution_key}" read as an integer, mod 100.
    """
    hash_input = f"{flag_code}:{distribution_key}"
    hash_value = int(hashlib.md5(hash_input.encode("utf-8")).hexdigest(), 16)
    return abs(hash_value) % 100
