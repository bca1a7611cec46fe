"""
Userscript encoder: turns a Script into a payload for injection into a page.

Exports: ScriptEncoder, EncodedScript, encode_script, verify_payload,
PayloadIntegrityError, SHIM_TABLE, get_shim.
"""

from .encoder import (
    EncodedScript,
    PayloadIntegrityError,
    ScriptEncoder,
    encode_script,
    verify_payload,
)
from .shims import SHIM_TABLE, CapabilityShim, ShimKindEnum, get_shim

__all__ = [
    "ScriptEncoder",
    "EncodedScript",
    "encode_script",
    "verify_payload",
    "PayloadIntegrityError",
    "SHIM_TABLE",
    "CapabilityShim",
    "ShimKindEnum",
    "get_shim",
]
