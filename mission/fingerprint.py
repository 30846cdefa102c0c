"""
mission/fingerprint.py
Deterministic fingerprints for the tamper-evident event log and for
evidence identity.

This is a 32-bit rolling string hash, NOT a cryptographic digest.
Collisions are possible; the value is for display-level tamper evidence
only and must never be used as a security boundary. No seed, no randomness:
the same input gives the same output in every process.
"""

import asyncio

EMPTY_FINGERPRINT = "0x00000000"


def _to_int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def fingerprint(data: str) -> str:
    """
    Fingerprint a string. Total: every input, including "", has an output.
    h = h * 31 + ord(c), wrapped to signed 32 bits after every character.
    """
    if not data:
        return EMPTY_FINGERPRINT
    h = 0
    for ch in data:
        h = _to_int32(((h << 5) - h) + ord(ch))
    return f"0x{abs(h):08x}"


def alert_identity(alert_id: str, timestamp: str, location: str) -> str:
    """Identity string an Alert's origin fingerprint is computed from."""
    return f"{alert_id}-{timestamp}-{location}"


def file_identity(name: str, size: int, last_modified: int) -> str:
    return f"{name}-{size}-{last_modified}"


async def fingerprint_file(
    name:          str,
    size:          int,
    last_modified: int,
    latency:       float = 0.0,
) -> str:
    """
    Fingerprint an evidence file from its name, size and mtime.
    latency stands in for real content-hashing cost; it suspends only this
    coroutine, so store operations keep running while it is pending.
    """
    if latency > 0:
        await asyncio.sleep(latency)
    return fingerprint(file_identity(name, size, last_modified))


def verify_alert_hash(alert) -> bool:
    """
    Recompute an Alert's origin fingerprint and compare with its stamp.
    False means the id, timestamp or location changed after stamping.
    """
    if not alert.hash:
        return False
    expected = fingerprint(alert_identity(alert.id, alert.timestamp, alert.location))
    return expected == alert.hash
