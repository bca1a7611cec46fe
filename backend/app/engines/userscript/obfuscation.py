"""
Backtick obfuscation for userscript payloads.

Backticks in user code are swapped for a random letter token so the code can
travel inside a template literal. A decode helper, prepended to the final
payload, swaps them back right before the host compiles the code with
``Function``.
"""

import logging
import random
import string

from app.core.config import settings
from app.engines.userscript.templates import render

_log = logging.getLogger(__name__)

BACKTICK = "`"
TOKEN_ALPHABET = string.ascii_letters

_system_random = random.SystemRandom()


def needs_obfuscation(code: str) -> bool:
    return BACKTICK in code


def generate_token(
    length: int | None = None,
    *,
    rng: random.Random | None = None,
    avoid: str | None = None,
) -> str:
    """
    Random token of *length* letters (default ENCODER_TOKEN_LENGTH).

    Uniqueness is probabilistic. When *avoid* is given, tokens occurring in it
    are rejected and drawn again.
    """
    n = length or settings.ENCODER_TOKEN_LENGTH
    r = rng or _system_random
    while True:
        token = "".join(r.choices(TOKEN_ALPHABET, k=n))
        if avoid is None or token not in avoid:
            return token
        _log.warning("generate_token: token collided with script source, retrying")


def obfuscate(code: str, token: str, decoder: str | None = None) -> str:
    """Replace every backtick with *token* and wrap as an invoked ``Function`` body."""
    return render(
        "function_call",
        decoder=decoder or settings.ENCODER_DECODE_FUNCTION_NAME,
        code=code.replace(BACKTICK, token),
    )


def decode_helper(token: str, decoder: str | None = None) -> str:
    """One-line JS function that turns *token* back into backticks."""
    return render(
        "decode_helper",
        decoder=decoder or settings.ENCODER_DECODE_FUNCTION_NAME,
        token=token,
    )
