"""Classify type strings as callable or data.

The type strings come from an external type-query capability (or from
syntactic annotations when no resolver is available), so the classifier
works on text only and never needs the analyzed program.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class Framework(str, Enum):
    REACT = "react"
    VUE = "vue"
    SVELTE = "svelte"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class TypeClassification:
    is_function: bool
    is_function_like: bool
    is_union: bool
    union_members: list[str] | None = field(default=None, hash=False)


# ── Pattern tables ──────────────────────────────────────────────────────────

REACT_EVENT_HANDLERS = frozenset({
    "MouseEventHandler", "ChangeEventHandler", "ClickEventHandler",
    "KeyboardEventHandler", "FocusEventHandler", "FormEventHandler",
    "TouchEventHandler", "PointerEventHandler", "WheelEventHandler",
    "AnimationEventHandler", "TransitionEventHandler", "DragEventHandler",
    "ClipboardEventHandler", "CompositionEventHandler", "UIEventHandler",
    "EventHandler", "ReactEventHandler",
})

# Named callable shapes beyond the React handler table.
CALLABLE_NAMES = frozenset({
    "Function", "VoidFunction", "Dispatch", "EventDispatcher",
    "SetStateAction", "RefCallback", "Listener",
})
_CALLABLE_SUFFIXES = ("callback", "handler", "listener", "dispatcher", "fn")
_ACTION_TOKEN_RE = re.compile(r"Actions?(?![a-z])")    # StoreAction, Action<T>; not Transaction

# Non-callable carriers win over the name heuristics above.
CARRIER_NAMES = frozenset({
    # component types
    "FC", "FunctionComponent", "ComponentType", "Component", "PureComponent",
    "ComponentClass", "ElementType", "ReactElement", "ReactNode",
    "JSX.Element", "DefineComponent", "SvelteComponent",
    # refs
    "Ref", "RefObject", "MutableRefObject", "ForwardedRef", "LegacyRef",
    "ShallowRef", "ComputedRef", "WritableComputedRef", "TemplateRef",
    # stores
    "Store", "StoreDefinition", "StoreActions", "_ActionsTree", "Pinia",
    "Writable", "Readable", "Reactive", "UnwrapRef", "ActionResult",
    "ActionData",
    # setup contexts
    "SetupContext", "EmitFn", "EmitsOptions", "Context",
})

_CARRIERS_LOWER = frozenset(c.lower() for c in CARRIER_NAMES)
_CALLABLE_LOWER = frozenset(n.lower() for n in REACT_EVENT_HANDLERS | CALLABLE_NAMES)

_FUNCTION_KEYWORD_RE = re.compile(r"^function\s*\([^)]*\)\s*:\s*.+", re.S)
_GENERIC_PREFIX_RE = re.compile(r"^<[^>]+>\s*")
_NAME_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*")

_FRAMEWORK_PATTERNS: list[tuple[Framework, tuple[str, ...]]] = [
    (Framework.REACT, ("React.", "MouseEventHandler", "ChangeEventHandler", "EventHandler",
                       "Dispatch<SetStateAction")),
    (Framework.VUE, ("defineProps", "defineEmits", "EmitFn", "Pinia", "Store<",
                     "SetupContext", "ComputedRef<")),
    (Framework.SVELTE, ("Writable<", "Readable<", "EventDispatcher", "SvelteComponent")),
]


# ── Public API ──────────────────────────────────────────────────────────────

def classify(type_string: str | None) -> TypeClassification:
    """Decide whether a type string denotes a callable.

    Precedence: literal function shapes, then union decomposition, then
    non-callable carriers, then named callable shapes.
    """
    text = _strip_parens((type_string or "").strip())
    if not text:
        return TypeClassification(False, False, False)

    if is_function_shape(text):
        return TypeClassification(True, True, False)

    members = split_union(text)
    if len(members) > 1:
        verdicts = [classify(m) for m in members]
        is_fn = any(v.is_function for v in verdicts)
        like = is_fn or any(v.is_function_like for v in verdicts)
        return TypeClassification(is_fn, like, True, members)

    base = _base_name(text)
    callable_name = _is_callable_name(base)
    if _is_carrier(base):
        return TypeClassification(False, callable_name or _has_call_signature(text), False)
    if callable_name:
        return TypeClassification(True, True, False)
    return TypeClassification(False, _has_call_signature(text), False)


def is_function_type(type_string: str | None) -> bool:
    return classify(type_string).is_function


def detect_framework(type_string: str | None) -> Framework:
    """Return the framework whose pattern table matches; react > vue > svelte."""
    text = type_string or ""
    for framework, needles in _FRAMEWORK_PATTERNS:
        if any(n in text for n in needles):
            return framework
    return Framework.UNKNOWN


def split_union(type_string: str) -> list[str]:
    """Split on top-level ``|``, ignoring bars nested in <>, (), [] or {}."""
    members: list[str] = []
    depth = 0
    current: list[str] = []
    prev = ""
    for ch in type_string:
        if ch in "<([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
        elif ch == ">" and prev != "=":
            depth -= 1
        if ch == "|" and depth == 0:
            members.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        prev = ch
    tail = "".join(current).strip()
    if tail:
        members.append(tail)
    return [m for m in members if m]


def is_function_shape(text: str) -> bool:
    """Literal arrow, ``function(...)`` or method-signature type shapes."""
    if _FUNCTION_KEYWORD_RE.match(text):
        return True
    body = _GENERIC_PREFIX_RE.sub("", text)
    if not body.startswith("("):
        return False
    close = _matching_paren(body, 0)
    if close < 0:
        return False
    rest = body[close + 1:].lstrip()
    return rest.startswith("=>") or (rest.startswith(":") and len(rest) > 1)


# ── Helpers ─────────────────────────────────────────────────────────────────

def _matching_paren(text: str, start: int) -> int:
    depth = 0
    prev = ""
    for i in range(start, len(text)):
        ch = text[i]
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth == 0:
                return i
        elif ch == "<":
            depth += 1
        elif ch == ">" and prev != "=":
            depth -= 1
        prev = ch
    return -1


def _strip_parens(text: str) -> str:
    while text.startswith("(") and _matching_paren(text, 0) == len(text) - 1:
        text = text[1:-1].strip()
    return text


def _base_name(text: str) -> str:
    m = _NAME_RE.match(text)
    if not m:
        return ""
    name = m.group(0)
    if name.startswith("React."):
        name = name[len("React."):]
    return name


def _is_carrier(base: str) -> bool:
    if not base:
        return False
    return base.lower() in _CARRIERS_LOWER or base.rsplit(".", 1)[-1].lower() in _CARRIERS_LOWER


def _is_callable_name(base: str) -> bool:
    if not base:
        return False
    name = base.rsplit(".", 1)[-1]
    lowered = name.lower()
    if lowered in _CALLABLE_LOWER:
        return True
    if lowered.endswith(_CALLABLE_SUFFIXES) and lowered not in _CALLABLE_SUFFIXES:
        return True
    return bool(_ACTION_TOKEN_RE.search(name))


def _has_call_signature(text: str) -> bool:
    """Object types with a bare call signature: ``{ (x: T): R }``."""
    if not text.startswith("{"):
        return False
    inner = text[1:-1].strip() if text.endswith("}") else text[1:]
    return inner.startswith("(") and is_function_shape(inner.rstrip(";, "))
