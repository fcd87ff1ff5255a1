"""Central extensibility point: maps reactive-primitive call names to PrimitiveEntry.

New libraries = new dict entries, no analyzer logic changes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class PrimitiveKind(str, Enum):
    STATE = "state"
    COMPUTED = "computed"
    CONTEXT = "context"
    STORE = "store"
    CUSTOM = "custom"


class ProcessKind(str, Enum):
    EFFECT = "effect"
    CALLBACK = "callback"
    MEMO = "memo"
    EVENT_HANDLER = "event-handler"
    CUSTOM_FUNCTION = "custom-function"
    IMPERATIVE_HANDLE = "imperative-handle"
    CLEANUP = "cleanup"


@dataclass(frozen=True)
class PrimitiveEntry:
    kind: PrimitiveKind
    library: str                               # "react", "swr", "vue", "pinia", ...
    category: str = ""                         # node metadata category; defaults to kind
    tuple_setter: bool = False                 # [value, setValue] where the 2nd is a mutator
    data_fetching: bool = False                # consolidate into one node
    process_members: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ProcessEntry:
    kind: ProcessKind
    library: str
    callback_index: int = 0                    # argument holding the function body
    deps_index: int | None = 1                 # argument holding the dependency array


_FETCH_MEMBERS = frozenset({
    "mutate", "trigger", "refetch", "reset", "mutateAsync", "fetchMore",
    "subscribeToMore", "startPolling", "stopPolling", "setSize", "fetchNextPage",
    "fetchPreviousPage", "updateQuery", "client",
})


def _state(library: str, **kw) -> PrimitiveEntry:
    return PrimitiveEntry(kind=PrimitiveKind.STATE, library=library, **kw)


def _fetch(library: str) -> PrimitiveEntry:
    return PrimitiveEntry(
        kind=PrimitiveKind.STORE, library=library, category="library-hook",
        data_fetching=True, process_members=_FETCH_MEMBERS,
    )


def _store(library: str, **kw) -> PrimitiveEntry:
    return PrimitiveEntry(kind=PrimitiveKind.STORE, library=library, **kw)


def _context(library: str, **kw) -> PrimitiveEntry:
    return PrimitiveEntry(kind=PrimitiveKind.CONTEXT, library=library, **kw)


PRIMITIVE_REGISTRY: dict[str, PrimitiveEntry] = {
    # ── React built-ins ──────────────────────────────────────────────────
    "useState": _state("react", tuple_setter=True),
    "useReducer": _state("react", category="reducer", tuple_setter=True),
    "useRef": _state("react", category="ref"),
    "createRef": _state("react", category="ref"),
    "useTransition": _state("react", tuple_setter=True),
    "useDeferredValue": PrimitiveEntry(kind=PrimitiveKind.COMPUTED, library="react"),
    "useId": _state("react"),
    "useSyncExternalStore": _store("react"),
    "useContext": _context("react"),
    "use": _context("react"),
    "useActionState": _state("react", tuple_setter=True),
    "useOptimistic": _state("react", tuple_setter=True),

    # ── Data fetching (consolidated) ─────────────────────────────────────
    "useSWR": _fetch("swr"),
    "useSWRMutation": _fetch("swr"),
    "useSWRInfinite": _fetch("swr"),
    "useSWRImmutable": _fetch("swr"),
    "useQuery": _fetch("tanstack-query"),
    "useMutation": _fetch("tanstack-query"),
    "useInfiniteQuery": _fetch("tanstack-query"),
    "useSuspenseQuery": _fetch("tanstack-query"),
    "useLazyQuery": _fetch("apollo"),
    "useSubscription": _fetch("apollo"),
    "useSWRConfig": _store("swr", category="library-hook"),
    "useQueryClient": _store("tanstack-query"),
    "useApolloClient": _store("apollo"),

    # ── State management ─────────────────────────────────────────────────
    "useSelector": _store("redux"),
    "useDispatch": _store("redux"),
    "useStore": _store("zustand"),
    "useAtom": _store("jotai", tuple_setter=True),
    "useAtomValue": _store("jotai"),
    "useSetAtom": _store("jotai"),
    "useRecoilState": _store("recoil", tuple_setter=True),
    "useRecoilValue": _store("recoil"),
    "useSetRecoilState": _store("recoil"),
    "useLocalObservable": _store("mobx"),

    # ── Forms ────────────────────────────────────────────────────────────
    "useForm": _store("react-hook-form", process_members=frozenset({
        "register", "handleSubmit", "reset", "setValue", "watch", "trigger",
        "setError", "clearErrors", "getValues",
    })),
    "useController": _store("react-hook-form"),
    "useWatch": _store("react-hook-form"),
    "useFieldArray": _store("react-hook-form", process_members=frozenset({
        "append", "remove", "insert", "move", "swap", "update", "replace", "prepend",
    })),
    "useFormik": _store("formik", process_members=frozenset({
        "handleSubmit", "handleChange", "handleBlur", "setFieldValue", "resetForm",
    })),
    "useFormState": _store("react-dom"),
    "useFormStatus": _store("react-dom"),

    # ── Routing ──────────────────────────────────────────────────────────
    "useNavigate": _context("react-router", category="routing"),
    "useParams": _context("react-router", category="routing"),
    "useLocation": _context("react-router", category="routing"),
    "useSearchParams": _context("react-router", category="routing", tuple_setter=True),
    "useMatch": _context("react-router", category="routing"),
    "useRouter": _context("next", category="routing"),
    "usePathname": _context("next", category="routing"),
    "useRouterState": _context("tanstack-router", category="routing"),
    "useSearch": _context("tanstack-router", category="routing"),
    "useRoute": _context("vue-router", category="routing"),

    # ── Vue ──────────────────────────────────────────────────────────────
    "ref": _state("vue"),
    "shallowRef": _state("vue"),
    "reactive": _state("vue"),
    "shallowReactive": _state("vue"),
    "readonly": _state("vue"),
    "toRef": _state("vue"),
    "toRefs": _state("vue"),
    "customRef": _state("vue"),
    "computed": PrimitiveEntry(kind=PrimitiveKind.COMPUTED, library="vue"),
    "inject": _context("vue"),
    "storeToRefs": _store("pinia"),
    "useTemplateRef": _state("vue", category="ref"),

    # ── Svelte ───────────────────────────────────────────────────────────
    "$state": _state("svelte"),
    "$derived": PrimitiveEntry(kind=PrimitiveKind.COMPUTED, library="svelte"),
    "writable": _store("svelte-store"),
    "readable": _store("svelte-store"),
    "derived": PrimitiveEntry(kind=PrimitiveKind.COMPUTED, library="svelte-store"),
    "getContext": _context("svelte"),
}


PROCESS_REGISTRY: dict[str, ProcessEntry] = {
    "useEffect": ProcessEntry(ProcessKind.EFFECT, "react"),
    "useLayoutEffect": ProcessEntry(ProcessKind.EFFECT, "react"),
    "useInsertionEffect": ProcessEntry(ProcessKind.EFFECT, "react"),
    "useCallback": ProcessEntry(ProcessKind.CALLBACK, "react"),
    "useMemo": ProcessEntry(ProcessKind.MEMO, "react"),
    "useImperativeHandle": ProcessEntry(ProcessKind.IMPERATIVE_HANDLE, "react",
                                        callback_index=1, deps_index=2),
    # Vue
    "watch": ProcessEntry(ProcessKind.EFFECT, "vue", callback_index=1, deps_index=None),
    "watchEffect": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "watchPostEffect": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "watchSyncEffect": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "onMounted": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "onBeforeMount": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "onUpdated": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "onBeforeUpdate": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "onUnmounted": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "onBeforeUnmount": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "onActivated": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    "onDeactivated": ProcessEntry(ProcessKind.EFFECT, "vue", deps_index=None),
    # Svelte
    "$effect": ProcessEntry(ProcessKind.EFFECT, "svelte", deps_index=None),
    "$effect.pre": ProcessEntry(ProcessKind.EFFECT, "svelte", deps_index=None),
    "onMount": ProcessEntry(ProcessKind.EFFECT, "svelte", deps_index=None),
    "onDestroy": ProcessEntry(ProcessKind.EFFECT, "svelte", deps_index=None),
    "beforeUpdate": ProcessEntry(ProcessKind.EFFECT, "svelte", deps_index=None),
    "afterUpdate": ProcessEntry(ProcessKind.EFFECT, "svelte", deps_index=None),
}

# Call names that declare emitters rather than state.
EMITTER_FACTORIES = frozenset({"defineEmits", "createEventDispatcher"})

# Generated RTK Query / Apollo style hooks: useGetUserQuery, useAddPostMutation
_GENERATED_FETCH_RE = re.compile(r"^use(?:Lazy)?[A-Z]\w*(?:Query|Mutation)$")
_PINIA_STORE_RE = re.compile(r"^use[A-Z]\w*Store$")
_CUSTOM_HOOK_RE = re.compile(r"^use[A-Z0-9]")


def lookup_primitive(name: str, extra_fetch_hooks: frozenset[str] = frozenset()) -> PrimitiveEntry | None:
    """Look up a reactive primitive by call name, falling back to naming patterns."""
    entry = PRIMITIVE_REGISTRY.get(name)
    if entry is not None:
        return entry
    if name in extra_fetch_hooks or _GENERATED_FETCH_RE.match(name):
        return _fetch("rtk-query" if name not in extra_fetch_hooks else "custom")
    if _PINIA_STORE_RE.match(name):
        return _store("pinia", category="store")
    return None


def lookup_process(name: str) -> ProcessEntry | None:
    return PROCESS_REGISTRY.get(name)


def is_custom_hook(name: str) -> bool:
    """A ``useXxx`` call that is neither a known primitive nor a known process hook."""
    return bool(_CUSTOM_HOOK_RE.match(name)) and name not in PROCESS_REGISTRY


def is_data_fetching(name: str, extra_fetch_hooks: frozenset[str] = frozenset()) -> bool:
    entry = lookup_primitive(name, extra_fetch_hooks)
    return entry is not None and entry.data_fetching


def get_all_primitive_names() -> set[str]:
    return set(PRIMITIVE_REGISTRY.keys())
