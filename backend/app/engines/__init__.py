"""
Engines: userscript encoder.
"""

from app.engines.userscript import ScriptEncoder, encode_script

__all__ = [
    "ScriptEncoder",
    "encode_script",
]
