"""
Jinja2 templates for the JavaScript wrappers emitted by the userscript encoder.

The wrappers are JavaScript, where ``{`` and ``}`` are everywhere, so this
environment uses ``[[ ]]`` for expressions and ``[% %]`` for statements.
User code is only ever passed in as a variable and is never parsed as a
template.

Use ``| js_string`` for anything that ends up inside a JS string literal;
``code`` is always emitted raw.
"""

import json
import threading
from typing import Any

from jinja2 import Environment, StrictUndefined, Template

# Wrapper sources. No trailing newlines: payloads grow by concatenation.
RUN_AT_END = (
    'document.addEventListener("DOMContentLoaded",()=>{[[ code ]]},{once:true});'
)
RUN_AT_IDLE = "window.onload=()=>{[[ code ]]};"
IMPORTS = (
    "(async ()=>{"
    "[% for url in urls %]await import([[ url | js_string ]]);[% endfor %]"
    "[[ code ]]})();"
)
FUNCTION_CALL = "Function([[ decoder ]](String.raw`[[ code ]]`))();"
DECODE_HELPER = (
    "function [[ decoder ]](src) "
    '{return src.replaceAll([[ token | js_string ]], "`");};'
)
NOT_IMPLEMENTED_STUB = (
    "function [[ name ]](...args) "
    "{console.error([[ (name ~ ' is not implemented in ' ~ product ~ ' yet, called with') | js_string ]], args)};"
)

_TEMPLATE_SOURCES: dict[str, str] = {
    "run_at_end": RUN_AT_END,
    "run_at_idle": RUN_AT_IDLE,
    "imports": IMPORTS,
    "function_call": FUNCTION_CALL,
    "decode_helper": DECODE_HELPER,
    "not_implemented_stub": NOT_IMPLEMENTED_STUB,
}

_JS_ENV: Environment | None = None
_templates: dict[str, Template] = {}
_lock = threading.Lock()


def js_string(value: Any) -> str:
    """Quote *value* as a double-quoted JavaScript string literal."""
    return json.dumps(str(value), ensure_ascii=False)


def _get_js_env() -> Environment:
    """Return the shared Jinja2 Environment for JS wrappers."""
    global _JS_ENV
    if _JS_ENV is None:
        _JS_ENV = Environment(
            autoescape=False,
            undefined=StrictUndefined,
            block_start_string="[%",
            block_end_string="%]",
            variable_start_string="[[",
            variable_end_string="]]",
            comment_start_string="[#",
            comment_end_string="#]",
        )
        _JS_ENV.filters["js_string"] = js_string
    return _JS_ENV


def get_template(name: str) -> Template:
    """Return the compiled wrapper template *name* (compiled once per process)."""
    tpl = _templates.get(name)
    if tpl is not None:
        return tpl
    source = _TEMPLATE_SOURCES[name]
    with _lock:
        tpl = _templates.get(name)
        if tpl is None:
            tpl = _get_js_env().from_string(source)
            _templates[name] = tpl
    return tpl


def render(template_name: str, /, **context: Any) -> str:
    """Render wrapper *template_name* with *context* (which may hold ``name``)."""
    return get_template(template_name).render(**context)
