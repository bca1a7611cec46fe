"""
Capability shim table for userscript grants.

Maps a grant name to the JavaScript that makes the capability available
under that name inside the injected code:

* POLYFILL: multi-line function definition built on DOM APIs.
* BINDING: single statement binding the name to an existing host API.

Names without a row get a stub from ``render_stub`` that reports the call to
``console.error`` instead of leaving the symbol undefined. New capabilities
are added as rows; the encoder does not change.
"""

from enum import Enum
from typing import NamedTuple

from app.core.config import settings
from app.engines.userscript.templates import render


class ShimKindEnum(str, Enum):
    """How a capability shim provides its name."""

    POLYFILL = "polyfill"
    BINDING = "binding"


class CapabilityShim(NamedTuple):
    kind: ShimKindEnum
    source: str


GM_ADD_STYLE = """
function GM_addStyle(css) {
	const style = document.createElement("style");
	style.setAttribute("type", "text/css");
	style.textContent = css;

	const head = document.querySelector("head");
	if (head === null) {
		document.documentElement.appendChild(style);
	} else {
		head.appendChild(style);
	}
	return style;
};
"""

# GM_addElement([parent_node,] tag_name, attributes)
GM_ADD_ELEMENT = """
function GM_addElement(...args) {
	let parent_node = document.head || document.body;
	if (typeof args[0] !== "string") {
		parent_node = args.shift();
	}
	const [tag_name, attributes = {}] = args;
	const element = document.createElement(tag_name);
	for (const [key, value] of Object.entries(attributes)) {
		if (key != "textContent") {
			element.setAttribute(key, value);
		} else {
			element.textContent = value;
		};
	};
	if (parent_node === undefined || parent_node === null) {
		document.documentElement.appendChild(element);
	} else {
		parent_node.appendChild(element);
	};
	return element;
};
"""

SHIM_TABLE: dict[str, CapabilityShim] = {
    "GM_addStyle": CapabilityShim(ShimKindEnum.POLYFILL, GM_ADD_STYLE),
    "GM_addElement": CapabilityShim(ShimKindEnum.POLYFILL, GM_ADD_ELEMENT),
    "unsafeWindow": CapabilityShim(
        ShimKindEnum.BINDING, "const unsafeWindow = window;"
    ),
    "GM_log": CapabilityShim(
        ShimKindEnum.BINDING, "const GM_log = console.log.bind(console);"
    ),
    "GM_deleteValue": CapabilityShim(
        ShimKindEnum.BINDING,
        "const GM_deleteValue = localStorage.removeItem.bind(localStorage);",
    ),
    "GM_setValue": CapabilityShim(
        ShimKindEnum.BINDING,
        "const GM_setValue = localStorage.setItem.bind(localStorage);",
    ),
    "GM_getValue": CapabilityShim(
        ShimKindEnum.BINDING,
        "const GM_getValue = localStorage.getItem.bind(localStorage);",
    ),
    "GM_listValues": CapabilityShim(
        ShimKindEnum.BINDING,
        "const GM_listValues = ()=> [...Array(localStorage.length).keys()].map(x=>localStorage.key(x));",
    ),
}


def get_shim(name: str) -> CapabilityShim | None:
    """Return the shim row for *name*, or None when the capability is unknown."""
    return SHIM_TABLE.get(name)


def known_capabilities() -> list[str]:
    return list(SHIM_TABLE)


def render_stub(name: str) -> str:
    """
    Stub for an unknown capability: a plain function that logs its name and
    call arguments and returns nothing, whatever the script expects the name
    to be.
    """
    return render(
        "not_implemented_stub", name=name, product=settings.ENCODER_PRODUCT_NAME
    )
