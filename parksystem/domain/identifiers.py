# File: parksystem/domain/identifiers.py
"""
Identifier and ticket code generation.

generate_id() is unique for the lifetime of the process, including calls
made from several threads within the same millisecond: the millisecond
timestamp is followed by a lock-protected monotonic counter and a short
random suffix.

generate_ticket_code() is a display code only. Its uniqueness is
probabilistic and never checked against a registry.
"""

import itertools
import random
import secrets
import string
import threading
import time

_ALPHABET36 = string.digits + string.ascii_lowercase
TICKET_ALPHABET = string.ascii_uppercase + string.digits
TICKET_PREFIX = "PKS-"
TICKET_LENGTH = 8

_counter = itertools.count()
_counter_lock = threading.Lock()


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_ALPHABET36[remainder])
    return "".join(reversed(digits))


def generate_id() -> str:
    millis = time.time_ns() // 1_000_000
    with _counter_lock:
        sequence = next(_counter)
    suffix = "".join(secrets.choice(_ALPHABET36) for _ in range(4))
    return f"{_base36(millis)}{_base36(sequence)}{suffix}"


def generate_ticket_code(prefix: str = TICKET_PREFIX, rng: random.Random = None) -> str:
    chooser = rng or random
    return prefix + "".join(chooser.choices(TICKET_ALPHABET, k=TICKET_LENGTH))
