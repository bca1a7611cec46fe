"""
ScriptEncoder: Script -> injectable JavaScript payload.

Stages, each wrapping the output of the previous one:

1. backtick obfuscation (only when the code contains a backtick)
2. run-at wrapping (START: none, END: DOMContentLoaded once, IDLE: window.onload)
3. dynamic imports for ``require`` (only when a non-blank URL is present)
4. grant shims, prepended one by one (last grant ends up first)
5. decode helper, prepended when stage 1 fired

Already-encoded scripts return None: the pipeline is not idempotent and the
caller must use ``script.code`` as is. Encoding never fails on a valid Script.
"""

import logging
import random
from typing import NamedTuple

from app.core.config import settings
from app.engines.userscript.obfuscation import (
    BACKTICK,
    decode_helper,
    generate_token,
    needs_obfuscation,
    obfuscate,
)
from app.engines.userscript.shims import get_shim, render_stub
from app.engines.userscript.templates import render
from app.models_script import RunAtEnum, Script

_log = logging.getLogger(__name__)

_RUN_AT_TEMPLATES: dict[RunAtEnum, str | None] = {
    RunAtEnum.START: None,
    RunAtEnum.END: "run_at_end",
    RunAtEnum.IDLE: "run_at_idle",
}


class PayloadIntegrityError(ValueError):
    """Raised when an encoded payload breaks the three-backtick invariant."""

    pass


class EncodedScript(NamedTuple):
    payload: str
    # Backtick substitution token; None when the code had no backtick.
    token: str | None = None

    @property
    def obfuscated(self) -> bool:
        return self.token is not None


def wrap_run_at(code: str, run_at: RunAtEnum) -> str:
    name = _RUN_AT_TEMPLATES[run_at]
    if name is None:
        return code
    return render(name, code=code)


def wrap_imports(code: str, require: list[str]) -> str:
    """Await every non-blank URL in order, then run *code*; no-op without URLs."""
    urls = [url for url in require if url != ""]
    if not urls:
        return code
    return render("imports", urls=urls, code=code)


def prepend_grants(code: str, grant: list[str]) -> str:
    for name in grant:
        if name == "":
            continue
        shim = get_shim(name)
        if shim is None:
            _log.warning("Capability %r is not implemented, emitting stub", name)
            code = render_stub(name) + code
        else:
            code = shim.source + code
    return code


class ScriptEncoder:
    """
    Encode userscripts into payloads for injection into a page.

    Stateless apart from the random source; safe to share between threads.
    Pass *rng* to make the backtick token reproducible (tests).
    """

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        token_length: int | None = None,
        reject_token_collision: bool | None = None,
        decoder: str | None = None,
    ) -> None:
        self._rng = rng
        self._token_length = token_length or settings.ENCODER_TOKEN_LENGTH
        self._reject_collision = (
            settings.ENCODER_REJECT_TOKEN_COLLISION
            if reject_token_collision is None
            else reject_token_collision
        )
        self._decoder = decoder or settings.ENCODER_DECODE_FUNCTION_NAME

    def encode(self, script: Script) -> str | None:
        """Return the payload, or None when ``script.encoded`` is set."""
        result = self.encode_with_details(script)
        if result is None:
            return None
        return result.payload

    def encode_with_details(self, script: Script) -> EncodedScript | None:
        """Like ``encode`` but also returns the backtick token used, if any."""
        if script.encoded:
            _log.debug("encode: script already encoded, skipping")
            return None

        code = script.code
        token: str | None = None
        if needs_obfuscation(code):
            token = generate_token(
                self._token_length,
                rng=self._rng,
                avoid=code if self._reject_collision else None,
            )
            code = obfuscate(code, token, self._decoder)
            _log.debug("encode: backticks replaced by a %d-letter token", len(token))

        code = wrap_run_at(code, script.run_at)
        code = wrap_imports(code, script.require)
        code = prepend_grants(code, script.grant)

        if token is not None:
            code = decode_helper(token, self._decoder) + code
        return EncodedScript(payload=code, token=token)


def verify_payload(encoded: EncodedScript) -> None:
    """
    Check the well-formedness of an obfuscated payload: exactly three
    backticks (the two around the ``Function`` body and the one in the
    decode helper). Raises PayloadIntegrityError otherwise.
    """
    if not encoded.obfuscated:
        return
    count = encoded.payload.count(BACKTICK)
    if count != 3:
        raise PayloadIntegrityError(
            f"Encoded payload contains {count} backticks, expected 3. "
            "A require URL or grant name probably contains a backtick."
        )


_default_encoder = ScriptEncoder()


def encode_script(script: Script) -> str | None:
    """Encode *script* with the shared default encoder."""
    return _default_encoder.encode(script)
