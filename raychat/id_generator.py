"""
Completion id generation
"""

import secrets
import string

LETTERS = string.ascii_letters
COMPLETION_ID_LENGTH = 29


def generate_random_string(length: int = COMPLETION_ID_LENGTH) -> str:
    """Random [a-zA-Z] string from the system CSPRNG"""
    return "".join(secrets.choice(LETTERS) for _ in range(length))


def generate_completion_id() -> str:
    return "chatcmpl-" + generate_random_string(COMPLETION_ID_LENGTH)
