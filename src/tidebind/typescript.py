"""Render resolved bindings into a single TypeScript module."""
from __future__ import annotations

import json
import typing as t
from dataclasses import dataclass, field

from .commands import ExportedCommand
from .config import ExportConfig
from .constants import ConstantEntry
from .datatype import (
    DataType,
    EnumOf,
    Literal,
    MapOf,
    NamedDataType,
    Optional,
    Primitive,
    Record,
    Reference,
    Sequence,
    TupleOf,
    TypeId,
    UnionOf,
)
from .errors import RenderInconsistencyError
from .events import ExportedEvent
from .naming import IDENTIFIER_REGEX, NameReservations, qualify, safe_identifier, to_camel_case, to_pascal_case


# ============================================================
# Inputs + state
# ============================================================

@dataclass(frozen=True)
class RenderInput:
    """Everything the renderer reads; borrowed for the duration of one render."""
    commands: tuple[ExportedCommand, ...] = ()
    events: tuple[ExportedEvent, ...] = ()
    types: tuple[NamedDataType, ...] = ()
    constants: tuple[ConstantEntry, ...] = ()
    namespace: str | None = None


# Identifiers declared by the preamble; user exports must not shadow them.
PREAMBLE_NAMES = ("Result", "UnlistenFn", "TypedEvent", "__makeEvent", "__toResult", "__invoke", "__listen", "__once")


@dataclass
class RenderState:
    """State container for one render call."""
    render_input: RenderInput
    config: ExportConfig
    names: NameReservations = field(default_factory=NameReservations)
    type_names: dict[TypeId, str] = field(default_factory=dict)
    type_definitions: dict[TypeId, NamedDataType] = field(default_factory=dict)
    command_names: dict[str, str] = field(default_factory=dict)
    event_names: dict[str, str] = field(default_factory=dict)
    constant_names: dict[str, str] = field(default_factory=dict)

    @property
    def indent(self) -> str:
        return self.config.indent


def build_render_state(render_input: RenderInput, config: ExportConfig) -> RenderState:
    """Reserve every export name up front so declarations and references agree."""
    render_state = RenderState(render_input=render_input, config=config)

    for preamble_name in PREAMBLE_NAMES:
        render_state.names.reserve(preamble_name)

    # Types first, in TypeId order, so their names do not depend on command order.
    for definition in sorted(render_input.types, key=lambda named: named.type_id):
        render_state.type_definitions[definition.type_id] = definition
        preferred_name = to_pascal_case(definition.name) or "Type"
        render_state.type_names[definition.type_id] = render_state.names.reserve(safe_identifier(preferred_name))

    for exported_command in render_input.commands:
        render_state.command_names[exported_command.name] = render_state.names.reserve(
            safe_identifier(to_camel_case(exported_command.name))
        )
    for exported_event in render_input.events:
        render_state.event_names[exported_event.name] = render_state.names.reserve(
            safe_identifier(to_camel_case(exported_event.name))
        )
    # Constant names are exported verbatim, so a clash cannot be renamed away.
    for constant in render_input.constants:
        if constant.name in render_state.names:
            raise RenderInconsistencyError(
                f"constant {constant.name!r} clashes with another export of the same name"
            )
        render_state.constant_names[constant.name] = render_state.names.reserve(constant.name)

    return render_state


# ============================================================
# Type expressions
# ============================================================

def render_literal(value: t.Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def render_property_name(name: str) -> str:
    return name if IDENTIFIER_REGEX.match(name) else json.dumps(name, ensure_ascii=False)


def join_union(members: t.Iterable[str]) -> str:
    unique_members: list[str] = []
    for member in members:
        if member not in unique_members:
            unique_members.append(member)
    return " | ".join(unique_members) or "never"


def wrap_compound(expression: str) -> str:
    """Parenthesize unions so they can be suffixed with ``[]``."""
    return f"({expression})" if " | " in expression else expression


def resolve_reference(render_state: RenderState, type_id: TypeId) -> str:
    type_name = render_state.type_names.get(type_id)
    if type_name is None:
        raise RenderInconsistencyError(
            f"type {type_id} is referenced but missing from the resolved closure"
        )
    return type_name


def is_key_shape(render_state: RenderState, shape: DataType, _seen: frozenset[TypeId] = frozenset()) -> bool:
    """True when ``shape`` can index a mapped type (strings, numbers and literal unions of them)."""
    if isinstance(shape, Primitive):
        return shape.kind in ("string", "number")
    if isinstance(shape, (Literal, EnumOf)):
        return all(isinstance(value, (str, int, float)) and not isinstance(value, bool) for value in shape.values)
    if isinstance(shape, Reference) and shape.type_id not in _seen:
        definition = render_state.type_definitions.get(shape.type_id)
        return definition is not None and is_key_shape(render_state, definition.shape, _seen | {shape.type_id})
    return False


def render_type(render_state: RenderState, shape: DataType, *, depth: int = 0) -> str:
    """Render a shape as a TypeScript type expression, referencing named types by name."""
    if isinstance(shape, Primitive):
        return shape.kind

    if isinstance(shape, Reference):
        return resolve_reference(render_state, shape.type_id)

    if isinstance(shape, (Literal, EnumOf)):
        return join_union(render_literal(value) for value in shape.values)

    if isinstance(shape, Sequence):
        return f"{wrap_compound(render_type(render_state, shape.item, depth=depth))}[]"

    if isinstance(shape, TupleOf):
        return "[" + ", ".join(render_type(render_state, item, depth=depth) for item in shape.items) + "]"

    if isinstance(shape, MapOf):
        key_type = render_type(render_state, shape.key, depth=depth) if is_key_shape(render_state, shape.key) else "string"
        value_type = render_type(render_state, shape.value, depth=depth)
        return f"Partial<{{ [key in {key_type}]: {value_type} }}>"

    if isinstance(shape, Optional):
        return join_union([render_type(render_state, shape.inner, depth=depth), "null"])

    if isinstance(shape, UnionOf):
        return join_union(render_type(render_state, variant, depth=depth) for variant in shape.variants)

    if isinstance(shape, Record):
        return render_record(render_state, shape, depth=depth)

    raise RenderInconsistencyError(f"cannot render shape {shape!r}")


def render_record(render_state: RenderState, record: Record, *, depth: int) -> str:
    """Render an object type, one property per line."""
    if not record.fields:
        return "Record<string, never>"

    indent = render_state.indent
    inner_indent = indent * (depth + 1)
    output_lines: list[str] = ["{"]
    for record_field in record.fields:
        output_lines.extend(jsdoc_lines(record_field.docs, inner_indent))
        optional_marker = "" if record_field.required else "?"
        field_type = render_type(render_state, record_field.shape, depth=depth + 1)
        output_lines.append(f"{inner_indent}{render_property_name(record_field.name)}{optional_marker}: {field_type};")
    output_lines.append(f"{indent * depth}}}")
    return "\n".join(output_lines)


def jsdoc_lines(docs: str, indent: str = "") -> list[str]:
    """Render a docstring as a JSDoc block."""
    if not docs or not docs.strip():
        return []
    doc_lines = docs.strip().replace("*/", "*\\/").splitlines()
    if len(doc_lines) == 1:
        return [f"{indent}/** {doc_lines[0].strip()} */"]
    output_lines = [f"{indent}/**"]
    for doc_line in doc_lines:
        output_lines.append(f"{indent} * {doc_line}".rstrip())
    output_lines.append(f"{indent} */")
    return output_lines


# ============================================================
# Emit blocks
# ============================================================

def emit_header_section(render_state: RenderState) -> list[str]:
    """Configured header plus the runtime import."""
    config = render_state.config
    output_lines = config.header.splitlines() if config.header else []
    output_lines.append("/* eslint-disable */")
    output_lines.append("")
    output_lines.append(
        f'import {{ invoke as __invoke, listen as __listen, once as __once }} from {json.dumps(config.runtime_module)};'
    )
    output_lines.append("")
    output_lines.append("")
    return output_lines


PREAMBLE = """\
export type Result<T, E> =
  | { status: "ok"; data: T }
  | { status: "error"; error: E };

export type UnlistenFn = () => void;

export type TypedEvent<T> = {
  listen: (callback: (payload: T) => void) => Promise<UnlistenFn>;
  once: (callback: (payload: T) => void) => Promise<UnlistenFn>;
};

function __makeEvent<T>(name: string): TypedEvent<T> {
  return {
    listen: (callback) => __listen<T>(name, callback),
    once: (callback) => __once<T>(name, callback),
  };
}

async function __toResult<T, E>(call: Promise<T>): Promise<Result<T, E>> {
  try {
    return { status: "ok", data: await call };
  } catch (e) {
    if (e instanceof Error) throw e;
    return { status: "error", error: e as E };
  }
}
"""


def emit_preamble_section(render_state: RenderState) -> list[str]:
    """Runtime helpers shared by every command and event binding."""
    return PREAMBLE.splitlines() + ["", ""]


def emit_type_declarations_section(render_state: RenderState) -> list[str]:
    """One declaration per resolved type, sorted by export name."""
    output_lines: list[str] = []
    declarations = sorted(
        render_state.type_definitions.values(),
        key=lambda definition: render_state.type_names[definition.type_id],
    )
    for definition in declarations:
        type_name = render_state.type_names[definition.type_id]
        output_lines.extend(jsdoc_lines(definition.docs))
        output_lines.append(f"export type {type_name} = {render_type(render_state, definition.shape)};")
        output_lines.append("")

    if output_lines:
        output_lines.append("")
    return output_lines


def render_return_type(render_state: RenderState, shape: DataType) -> str:
    if isinstance(shape, Primitive) and shape.kind == "null":
        return "void"
    return render_type(render_state, shape)


def emit_commands_section(render_state: RenderState) -> list[str]:
    """One async function per command, in registration order."""
    indent = render_state.indent
    namespace = render_state.render_input.namespace
    output_lines: list[str] = []

    for exported_command in render_state.render_input.commands:
        function_name = render_state.command_names[exported_command.name]
        wire_name = json.dumps(qualify(exported_command.name, namespace))

        parameter_declarations: list[str] = []
        argument_entries: list[str] = []
        local_names = NameReservations()
        for parameter in exported_command.params:
            local_name = local_names.reserve(safe_identifier(to_camel_case(parameter.name) or parameter.name))
            optional_marker = "?" if parameter.optional else ""
            parameter_declarations.append(
                f"{local_name}{optional_marker}: {render_type(render_state, parameter.shape)}"
            )
            wire_key = render_property_name(parameter.name)
            argument_entries.append(local_name if wire_key == local_name else f"{wire_key}: {local_name}")

        arguments_literal = "{ " + ", ".join(argument_entries) + " }" if argument_entries else "{}"
        return_type = render_return_type(render_state, exported_command.returns)
        invoke_call = f"__invoke<{return_type}>({wire_name}, {arguments_literal})"

        output_lines.extend(jsdoc_lines(exported_command.docs))
        if exported_command.error is None:
            output_lines.append(
                f"export async function {function_name}({', '.join(parameter_declarations)}): Promise<{return_type}> {{"
            )
            output_lines.append(f"{indent}return await {invoke_call};")
        else:
            error_type = render_type(render_state, exported_command.error)
            result_type = f"Result<{return_type}, {error_type}>"
            output_lines.append(
                f"export async function {function_name}({', '.join(parameter_declarations)}): Promise<{result_type}> {{"
            )
            output_lines.append(f"{indent}return await __toResult<{return_type}, {error_type}>({invoke_call});")
        output_lines.append("}")
        output_lines.append("")

    if output_lines:
        output_lines.append("")
    return output_lines


def emit_events_section(render_state: RenderState) -> list[str]:
    """One typed event object per event, in registration order."""
    namespace = render_state.render_input.namespace
    output_lines: list[str] = []
    for exported_event in render_state.render_input.events:
        event_name = render_state.event_names[exported_event.name]
        payload_type = render_type(render_state, exported_event.payload)
        channel = json.dumps(qualify(exported_event.name, namespace))
        output_lines.extend(jsdoc_lines(exported_event.docs))
        output_lines.append(f"export const {event_name} = __makeEvent<{payload_type}>({channel});")

    if output_lines:
        output_lines.extend(["", ""])
    return output_lines


def emit_constants_section(render_state: RenderState) -> list[str]:
    """One statically-initialized constant per entry, sorted by name."""
    output_lines: list[str] = []
    for constant in render_state.render_input.constants:
        constant_name = render_state.constant_names[constant.name]
        constant_type = render_type(render_state, constant.shape)
        output_lines.append(f"export const {constant_name}: {constant_type} = {render_literal(constant.value)};")
    return output_lines


Emitter = t.Callable[[RenderState], list[str]]

DEFAULT_EMITTERS: tuple[Emitter, ...] = (
    emit_header_section,
    emit_preamble_section,
    emit_type_declarations_section,
    emit_commands_section,
    emit_events_section,
    emit_constants_section,
)


def render_typescript(
    render_input: RenderInput,
    config: ExportConfig | None = None,
    *,
    emitters: t.Sequence[Emitter] = DEFAULT_EMITTERS,
) -> str:
    """Render bindings to TypeScript. Pure: the same input always gives the same text."""
    render_state = build_render_state(render_input, config or ExportConfig())
    output_lines: list[str] = []
    for emitter in emitters:
        output_lines.extend(emitter(render_state))
    return "\n".join(output_lines).rstrip() + "\n"
