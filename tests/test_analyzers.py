"""Tests for the fact analyzers on inline component sources."""

from __future__ import annotations

import pytest

from dfd_analyzer.analyzer import extract_facts
from dfd_analyzer.analyzer.component import component_name_from_file, locate_component
from dfd_analyzer.errors import ComponentNotFound
from dfd_analyzer.ir.facts import OutputBranch, OutputElement
from dfd_analyzer.source.adapter import adapt_or_raise


def facts_for(source: str, filename: str = "Component.tsx"):
    return extract_facts(adapt_or_raise(source, filename))


def prop(facts, name):
    return next(p for p in facts.props if p.name == name)


def primitive(facts, variable):
    return next(p for p in facts.primitives if variable in p.variables)


def process(facts, name):
    return next(p for p in facts.processes if p.name == name)


def ref_keys(refs):
    return [(r.name, r.kind, r.attribute) for r in refs]


# ── Component location ──────────────────────────────────────────────────────

class TestComponentLocation:
    def test_default_export_wins(self):
        source = (
            "function Helper() { return <div/> }\n"
            "export default function Main() { return <p/> }\n"
        )
        shape = locate_component(adapt_or_raise(source, "Main.tsx"))
        assert shape.name == "Main"
        assert shape.kind == "function"

    def test_default_export_by_name(self):
        source = (
            "const Other = () => <span/>;\n"
            "const App = () => <div/>;\n"
            "export default App;\n"
        )
        assert locate_component(adapt_or_raise(source, "App.tsx")).name == "App"

    def test_forward_ref_unwrapped(self):
        source = "export const Input = forwardRef((props, ref) => <input ref={ref} />);\n"
        shape = locate_component(adapt_or_raise(source, "Input.tsx"))
        assert shape.name == "Input"
        assert shape.wrappers == ["forwardRef"]

    def test_class_component(self):
        source = "export class Counter extends React.Component { render() { return <div/> } }\n"
        shape = locate_component(adapt_or_raise(source, "Counter.tsx"))
        assert shape.kind == "class"
        assert shape.name == "Counter"

    def test_no_component(self):
        with pytest.raises(ComponentNotFound):
            locate_component(adapt_or_raise("function helper() { return <div/> }\n", "h.tsx"))
        with pytest.raises(ComponentNotFound):
            locate_component(adapt_or_raise("export const x = 1;\n", "x.ts"))

    def test_sfc_name_from_file(self):
        assert component_name_from_file("src/components/01-TodoList.vue") == "TodoList"
        assert component_name_from_file("vue") == "Component"


# ── Props ───────────────────────────────────────────────────────────────────

class TestProps:
    def test_destructured_with_interface(self):
        source = """
interface Props { label: string; onClick: () => void }
export function Button({ label, onClick = noop, ...rest }: Props) {
  return <button onClick={onClick}>{label}</button>;
}
"""
        f = facts_for(source)
        assert [p.name for p in f.props] == ["label", "onClick", "rest"]
        assert prop(f, "label").declared_type == "string"
        assert prop(f, "label").is_destructured
        assert prop(f, "onClick").has_default
        assert prop(f, "onClick").declared_type == "() => void"
        assert prop(f, "rest").is_rest

    def test_props_identifier(self):
        f = facts_for("export function Card(props: CardProps) { return <div>{props.title}</div> }\n")
        assert [(p.name, p.declared_type) for p in f.props] == [("props", "CardProps")]

    def test_fc_type_argument(self):
        source = "export const Title: React.FC<{ text: string }> = ({ text }) => <h1>{text}</h1>;\n"
        f = facts_for(source)
        assert prop(f, "text").declared_type == "string"

    def test_vue_define_props_and_emits(self):
        source = """<script setup lang="ts">
const props = defineProps<{ title: string; count?: number }>()
const emit = defineEmits<{ (e: 'save', value: string): void }>()
</script>
<template><h1>{{ title }}</h1></template>
"""
        f = facts_for(source, "Editor.vue")
        assert f.name == "Editor"
        assert prop(f, "title").declared_type == "string"
        assert prop(f, "count").declared_type == "number"
        assert prop(f, "save").is_event
        assert "emit" in f.emitter_names

    def test_vue_options_props(self):
        source = """<script>
export default {
  name: 'Greeting',
  props: { msg: String, n: { type: Number, default: 1 } },
  emits: ['done'],
}
</script>
<template><p>{{ msg }}</p></template>
"""
        f = facts_for(source, "Anything.vue")
        assert f.name == "Greeting"
        assert prop(f, "msg").declared_type == "String"
        assert prop(f, "n").declared_type == "Number"
        assert prop(f, "n").has_default
        assert prop(f, "done").is_event

    def test_svelte_exported_lets_and_dispatch(self):
        source = """<script lang="ts">
  import { createEventDispatcher } from 'svelte';
  export let name = 'world';
  export let count: number;
  const dispatch = createEventDispatcher();
  function notify() { dispatch('change', count); }
</script>
<p on:click={notify}>{name}</p>
"""
        f = facts_for(source, "Hello.svelte")
        assert prop(f, "name").has_default
        assert prop(f, "count").declared_type == "number"
        assert not prop(f, "count").has_default
        assert prop(f, "change").is_event
        assert process(f, "notify").emits == ["change"]


# ── Reactive primitives ─────────────────────────────────────────────────────

class TestPrimitives:
    def test_state_pair(self):
        source = """
export function Counter() {
  const [count, setCount] = useState(0);
  return <div>{count}</div>;
}
"""
        prim = primitive(facts_for(source), "count")
        assert prim.name == "useState"
        assert prim.variables == ["count", "setCount"]
        assert prim.is_read_write_pair
        assert prim.callable_variables == ["setCount"]
        assert not prim.is_function_only

    def test_predicate_names_stay_data(self):
        source = """
export function Header() {
  const { user, isAuthenticated, logout } = useContext(AuthContext);
  return <span>{isAuthenticated}</span>;
}
"""
        prim = primitive(facts_for(source), "user")
        assert prim.callable_variables == ["logout"]
        assert not prim.is_function_only

    def test_function_only_by_names(self):
        source = """
export function Toolbar() {
  const { canUndo, handleUndo } = useContext(HistoryContext);
  return <button onClick={handleUndo}>undo</button>;
}
"""
        prim = primitive(facts_for(source), "canUndo")
        assert prim.callable_variables == ["handleUndo"]
        assert prim.is_function_only

    def test_data_fetching_hook(self):
        source = """
export function Profile() {
  const { data, error, mutate } = useSWR('/api/user', fetcher);
  return <div>{data}</div>;
}
"""
        prim = primitive(facts_for(source), "data")
        assert prim.data_fetching
        assert prim.is_object_pattern
        assert prim.callable_variables == ["mutate"]
        assert prim.arguments == ["'/api/user'", "fetcher"]

    def test_custom_hook(self):
        source = """
export function Layout() {
  const { width } = useWindowSize();
  return <div>{width}</div>;
}
"""
        prim = primitive(facts_for(source), "width")
        assert prim.kind == "custom"
        assert prim.category == "custom-hook"

    def test_state_initializer_references(self):
        source = """
export function Counter({ initial }) {
  const [count, setCount] = useState(initial);
  return <div>{count}</div>;
}
"""
        assert primitive(facts_for(source), "count").init_references == ["initial"]

    def test_vue_computed_dependencies(self):
        source = """<script setup>
import { ref, computed } from 'vue'
const count = ref(0)
const double = computed(() => count.value * 2)
</script>
<template><p>{{ double }}</p></template>
"""
        f = facts_for(source, "Double.vue")
        assert primitive(f, "count").library == "vue"
        double = primitive(f, "double")
        assert double.kind == "computed"
        assert double.dependencies == ["count"]

    def test_svelte_let_and_reactive_declaration(self):
        source = """<script>
  let count = 0;
  $: doubled = count * 2;
</script>
<p>{doubled}</p>
"""
        f = facts_for(source, "Double.svelte")
        assert primitive(f, "count").kind == "state"
        doubled = primitive(f, "doubled")
        assert doubled.kind == "computed"
        assert doubled.dependencies == ["count"]


# ── Processes ───────────────────────────────────────────────────────────────

class TestProcesses:
    def test_effect_with_cleanup(self):
        source = """
export function Clock({ delay }) {
  const [now, setNow] = useState(0);
  useEffect(() => {
    const id = setInterval(() => setNow(Date.now()), delay);
    return () => clearInterval(id);
  }, [delay]);
  return <span>{now}</span>;
}
"""
        effect = process(facts_for(source), "useEffect")
        assert effect.kind == "effect"
        assert effect.dependencies == ["delay"]
        assert effect.cleanup is not None
        assert effect.cleanup.kind == "cleanup"
        assert "setNow" in effect.references

    def test_empty_dependency_array(self):
        source = """
export function Once() {
  useEffect(() => { track(); }, []);
  return <div/>;
}
"""
        assert process(facts_for(source), "useEffect").dependencies is None

    def test_handler_references_in_order(self):
        source = """
export function Counter() {
  const [count, setCount] = useState(0);
  const handleClick = () => setCount(count + 1);
  return <button onClick={handleClick}>{count}</button>;
}
"""
        handler = process(facts_for(source), "handleClick")
        assert handler.kind == "event-handler"
        assert handler.references == ["setCount", "count"]
        assert [(a.name, a.kind) for a in handler.accesses] == [("setCount", "invoke"), ("count", "read")]

    def test_external_call_on_import(self):
        source = """
import { api } from './api';
export function Form({ value }) {
  function save() { api.post(value); }
  return <button onClick={save}>Save</button>;
}
"""
        save = process(facts_for(source), "save")
        assert save.kind == "event-handler"
        (call,) = save.external_calls
        assert call.callee == "api.post"
        assert call.arguments == ["value"]

    def test_local_shadowing(self):
        source = """
export function List({ items }) {
  function first() { const items = []; return items[0]; }
  return <ul>{first()}</ul>;
}
"""
        assert process(facts_for(source), "first").references == []

    def test_inline_handler(self):
        source = """
export function Reset() {
  const [count, setCount] = useState(0);
  return <button onClick={() => setCount(0)}>{count}</button>;
}
"""
        inline = process(facts_for(source), "inline_onClick")
        assert inline.is_inline
        assert inline.attribute == "onClick"
        assert inline.references == ["setCount"]

    def test_imperative_handle(self):
        source = """
export const Field = forwardRef((props, ref) => {
  const inputRef = useRef(null);
  const [value, setValue] = useState('');
  useImperativeHandle(ref, () => ({
    focus: () => inputRef.current.focus(),
    clear() { setValue(''); },
  }), [value]);
  return <input ref={inputRef} value={value} />;
});
"""
        handle = process(facts_for(source), "useImperativeHandle")
        assert handle.kind == "imperative-handle"
        assert handle.ref_name == "ref"
        assert handle.dependencies == ["value"]
        assert [m.name for m in handle.exported_methods] == ["focus", "clear"]
        clear = handle.exported_methods[1]
        assert clear.references == ["setValue"]

    def test_vue_watch_source_is_dependency(self):
        source = """<script setup>
import { ref, watch } from 'vue'
const query = ref('')
watch(query, (q) => { console.log(q) })
</script>
<template><input v-model="query" /></template>
"""
        watcher = process(facts_for(source, "Search.vue"), "watch")
        assert watcher.kind == "effect"
        assert watcher.dependencies == ["query"]


# ── Rendered output ─────────────────────────────────────────────────────────

class TestRenderedOutput:
    def test_conditional_and_loop(self):
        source = """
export function List({ open, items }) {
  return (
    <div>
      {open && <Modal />}
      {items.map(item => <li key={item.id}>{item.name}</li>)}
    </div>
  );
}
"""
        (div,) = facts_for(source).output.children
        cond, loop = div.children
        assert isinstance(cond, OutputBranch)
        assert cond.label == "{open}"
        assert ref_keys(cond.refs) == [("open", "read", None)]
        assert cond.children[0].tag == "Modal"
        assert loop.kind == "loop"
        assert loop.label == "{loop: items}"
        (li,) = loop.children
        assert li.tag == "li"
        assert li.refs == []

    def test_ternary_gives_negated_branch(self):
        source = """
export function Status({ ok }) {
  return <div>{ok ? <Good /> : <Bad />}</div>;
}
"""
        (div,) = facts_for(source).output.children
        yes, no = div.children
        assert yes.label == "{ok}"
        assert no.label == "{!ok}"
        assert no.children[0].tag == "Bad"

    def test_negated_compound_condition_is_parenthesized(self):
        source = """
export function Badge({ count }) {
  return <div>{count > 3 ? <Many /> : <Few />}</div>;
}
"""
        (div,) = facts_for(source).output.children
        yes, no = div.children
        assert yes.label == "{count > 3}"
        assert no.label == "{!(count > 3)}"

    @pytest.mark.parametrize("expression, label", [
        ("user.isAdmin", "{!user.isAdmin}"),
        ("user?.name", "{!user?.name}"),
        ("!open", "{open}"),
        ("!a && b", "{!(!a && b)}"),
    ])
    def test_negated_labels(self, expression, label):
        branch = OutputBranch(kind="conditional", expression=expression, negated=True)
        assert branch.label == label

    def test_early_return_branch(self):
        source = """
export function Page({ loading, title }) {
  if (loading) return <Spinner />;
  return <h1>{title}</h1>;
}
"""
        early, h1 = facts_for(source).output.children
        assert isinstance(early, OutputBranch)
        assert early.label == "{loading}"
        assert isinstance(h1, OutputElement)
        assert ref_keys(h1.refs) == [("title", "read", None)]

    def test_fragment_text_and_event(self):
        source = """
export function Counter({ onReset }) {
  const [count, setCount] = useState(0);
  return <><button onClick={onReset}>reset</button>{count}</>;
}
"""
        button, text = facts_for(source).output.children
        assert ref_keys(button.refs) == [("onReset", "invoke", "onClick")]
        assert text.tag == "text"
        assert ref_keys(text.refs) == [("count", "read", None)]

    def test_vue_template_directives(self):
        source = """<script setup>
import { ref } from 'vue'
const items = ref([])
const loading = ref(false)
const message = ref('')
const query = ref('')
function increment() {}
</script>
<template>
  <ul><li v-for="item in items" :key="item.id">{{ item.name }}</li></ul>
  <p v-if="loading">Loading</p>
  <p v-else>{{ message }}</p>
  <button @click="increment">+</button>
  <input v-model="query" />
</template>
"""
        ul, shown, hidden, button, field = facts_for(source, "List.vue").output.children
        (loop,) = ul.children
        assert loop.label == "{loop: items}"
        assert loop.children[0].tag == "li"
        assert shown.label == "{loading}"
        assert hidden.label == "{!loading}"
        assert ref_keys(hidden.children[0].refs) == [("message", "read", None)]
        assert ref_keys(button.refs) == [("increment", "invoke", "onClick")]
        assert ref_keys(field.refs) == [("query", "read", "v-model"), ("query", "invoke", "v-model")]

    def test_svelte_each_else(self):
        source = """<script>
  let todos = [];
  function add() {}
</script>
{#each todos as todo}<li>{todo.text}</li>{:else}<p>Empty</p>{/each}
<button on:click={add}>Add</button>
"""
        loop, empty, button = facts_for(source, "Todos.svelte").output.children
        assert loop.label == "{loop: todos}"
        assert loop.children[0].tag == "li"
        assert empty.label == "{!todos}"
        assert ref_keys(button.refs) == [("add", "invoke", "onClick")]
