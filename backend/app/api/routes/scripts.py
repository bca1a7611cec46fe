"""
Userscript encoding endpoints.

Endpoints: encode (POST), capabilities (GET).
"""

import logging

from fastapi import APIRouter

from app.core.config import settings
from app.engines.userscript import (
    SHIM_TABLE,
    ScriptEncoder,
    verify_payload,
)
from app.schemas_script import CapabilityPublic, ScriptEncodeIn, ScriptEncodeOut

_log = logging.getLogger(__name__)

router = APIRouter(prefix="/scripts", tags=["scripts"])

_encoder = ScriptEncoder()


@router.post("/encode", response_model=ScriptEncodeOut)
def encode(body: ScriptEncodeIn) -> ScriptEncodeOut:
    """
    Encode a userscript for injection. Already-encoded scripts come back
    unchanged with ``skipped=true``. A payload failing the integrity check
    raises PayloadIntegrityError (422 via the app handler).
    """
    result = _encoder.encode_with_details(body.to_script())
    if result is None:
        return ScriptEncodeOut(skipped=True, code=body.code)
    if settings.ENCODER_VERIFY_PAYLOAD:
        verify_payload(result)
    _log.debug("encode: %d chars, obfuscated=%s", len(result.payload), result.obfuscated)
    return ScriptEncodeOut(code=result.payload, obfuscated=result.obfuscated)


@router.get("/capabilities", response_model=list[CapabilityPublic])
def list_capabilities() -> list[CapabilityPublic]:
    """Grant names with a real shim; any other grant gets a logging stub."""
    return [
        CapabilityPublic(name=name, kind=shim.kind) for name, shim in SHIM_TABLE.items()
    ]
