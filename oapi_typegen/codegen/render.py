"""Render type definitions into one Python models module with Jinja2."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Iterable, Mapping

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template

from ..shared.errors import SchemaResolutionError
from ..shared.naming import to_snake_case
from .constraints import Constraints
from .schema import Field, TypeDefinition, TypeKind, TypeSchema, UnionEncoding

logger = logging.getLogger(__name__)

TEMPLATES_DIR: Final[Path] = Path(__file__).parent / "templates"
HEADER: Final[str] = "# Code generated by oapi-typegen. DO NOT EDIT."

_ENUM_BASES: Final[dict[str, str]] = {
    "str": "str, EnumModel",
    "int": "int, EnumModel",
    "float": "float, EnumModel",
    "bool": "EnumModel",
}

# Methods of the runtime union classes that accessors must not shadow
_RESERVED_SUFFIXES: Final[frozenset[str]] = frozenset({"variant", "json_value", "a", "b"})

_STDLIB_NAMES: Final[dict[str, str]] = {
    "datetime": "from datetime import datetime",
    "date": "from datetime import date",
    "UUID": "from uuid import UUID",
}


def docstring(text: str, indent: int = 4) -> str:
    """Format ``text`` as a triple-quoted docstring body at ``indent``."""
    text = text.strip().replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if text.endswith('"'):
        text += " "
    lines = text.splitlines()
    if len(lines) <= 1:
        return f'"""{text}"""'
    pad = " " * indent
    body = "\n".join(pad + line.rstrip() if line.strip() else "" for line in lines[1:])
    return f'"""{lines[0]}\n{body}\n{pad}"""'


def first_line(text: str) -> str:
    return text.strip().splitlines()[0].strip() if text.strip() else ""


@dataclass(frozen=True, slots=True)
class FieldView:
    name: str
    annotation: str
    default: str = ""
    comment: str = ""


@dataclass(frozen=True, slots=True)
class AccessorView:
    suffix: str
    annotation: str
    index: int


@dataclass(slots=True)
class ModelView:
    """Template-ready description of one top-level definition."""

    kind: str
    name: str
    doc: str = ""
    target: str = ""
    bases: list[str] = field(default_factory=list)
    enum_base: str = ""
    members: list[tuple[str, str]] = field(default_factory=list)
    fields: list[FieldView] = field(default_factory=list)
    error_code: str = ""
    union_base: str = ""
    discriminator: str | None = None
    accessors: list[AccessorView] = field(default_factory=list)


# validation tag name -> pydantic Field keyword
_TAG_KEYWORDS: Final[dict[str, str]] = {
    "gt": "gt",
    "gte": "ge",
    "lt": "lt",
    "lte": "le",
    "min": "min_length",
    "max": "max_length",
}


def _constraint_args(schema: TypeSchema, constraints: Constraints) -> list[str]:
    """Pydantic ``Field`` keywords for the constraints ``schema`` can carry."""
    args = []
    if schema.kind is TypeKind.SCALAR:
        numeric = schema.py_type in ("int", "float")
        text = schema.py_type == "str"
        for tag in constraints.validation_tags:
            name, _, value = tag.partition("=")
            keyword = _TAG_KEYWORDS.get(name)
            if keyword is None:
                continue
            if (numeric and not keyword.endswith("_length")) or (text and keyword.endswith("_length")):
                args.append(f"{keyword}={value}")
        if text and constraints.pattern:
            args.append(f"pattern={constraints.pattern!r}")
    elif schema.kind is TypeKind.ARRAY:
        if constraints.min_items:
            args.append(f"min_length={constraints.min_items}")
        if constraints.max_items is not None:
            args.append(f"max_length={constraints.max_items}")
    return args


def field_default(prop: Field) -> str:
    """The right-hand side declaring ``prop``; empty for a plain required field.

    Optional fields default to None.  The JSON name becomes the alias when it
    differs from the attribute name.
    """
    args = []
    if not prop.constraints.required:
        args.append("None")
    if prop.py_name != prop.json_name:
        args.append(f"alias={prop.json_name!r}")
    args.extend(_constraint_args(prop.schema, prop.constraints))
    if prop.sensitive:
        args.append("repr=False")
    if not args:
        return ""
    if args == ["None"]:
        return "None"
    return f"Field({', '.join(args)})"


def topo_sort_definitions(definitions: list[TypeDefinition]) -> list[TypeDefinition]:
    """Order definitions so base classes and alias targets come first.

    Field annotations are resolved by ``model_rebuild()`` and union variants
    bound at the end of the module, so only these edges constrain the
    order.  Cycles are ignored.
    """
    by_name = {definition.name: definition for definition in definitions}
    deps: dict[str, list[str]] = {}
    for definition in definitions:
        edges = list(definition.schema.bases)
        if definition.is_alias and definition.schema.kind is TypeKind.REFERENCE:
            edges.append(definition.schema.py_type)
        deps[definition.name] = edges

    ordered: list[TypeDefinition] = []
    temporary: set[str] = set()
    permanent: set[str] = set()

    def visit(name: str) -> None:
        if name in permanent or name in temporary:
            return
        temporary.add(name)
        for dep in deps.get(name, ()):
            if dep in by_name:
                visit(dep)
        temporary.discard(name)
        permanent.add(name)
        ordered.append(by_name[name])

    for definition in definitions:
        visit(definition.name)
    return ordered


@dataclass
class RenderContext:
    """Jinja2 environment with the models template pre-compiled."""

    templates_dir: Path = TEMPLATES_DIR
    template_env: Environment = field(init=False)
    _models_template: Template = field(init=False)

    def __post_init__(self) -> None:
        self.template_env = Environment(
            loader=FileSystemLoader(self.templates_dir),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined,
            auto_reload=False,
        )
        self.template_env.filters["docstring"] = docstring
        self._models_template = self.template_env.get_template("models.py.j2")

    @property
    def models_template(self) -> Template:
        return self._models_template

    def render_models(
        self,
        definitions: list[TypeDefinition],
        package: str = "",
        error_mapping: Mapping[str, str] | None = None,
    ) -> str:
        """Render ``definitions`` as the source text of one module."""
        builder = _ModuleBuilder(definitions, error_mapping or {})
        views = builder.views()
        return self._models_template.render(
            header=HEADER,
            package=package,
            views=views,
            bindings=builder.bindings,
            stdlib_imports=builder.stdlib_imports(),
            typing_imports=builder.typing_imports(),
            runtime_imports=sorted(builder.runtime_names, key=lambda name: (name[0].islower(), name)),
            needs_field=builder.needs_field,
        )


class _ModuleBuilder:
    """Turns definitions into views and records what the module imports."""

    def __init__(self, definitions: list[TypeDefinition], error_mapping: Mapping[str, str]) -> None:
        self.definitions = topo_sort_definitions(definitions)
        self.by_name = {definition.name: definition for definition in definitions}
        self.type_schema_map = {definition.name: definition.schema for definition in definitions}
        self.error_mapping = error_mapping
        self.bindings: list[str] = []
        self.runtime_names: set[str] = set()
        self.needs_field = False
        self._texts: list[str] = []

    def views(self) -> list[ModelView]:
        views = []
        for definition in self.definitions:
            views.append(self._view(definition))
        unknown = set(self.error_mapping) - set(self.by_name)
        for name in sorted(unknown):
            logger.warning("error-mapping names unknown type %s", name)
        return views

    def _note(self, *texts: str) -> None:
        self._texts.extend(texts)

    def stdlib_imports(self) -> list[str]:
        text = "\n".join(self._texts)
        lines = [line for name, line in _STDLIB_NAMES.items() if re.search(rf"\b{name}\b", text)]
        # dotted x-py-type overrides, eg decimal.Decimal
        modules = sorted(set(re.findall(r"(?<![\w.])([a-z_][\w]*)\.[A-Za-z_]", text)))
        return [f"import {module}" for module in modules] + lines

    def typing_imports(self) -> list[str]:
        text = "\n".join(self._texts)
        return [name for name in ("Any", "Optional") if re.search(rf"\b{name}\b", text)]

    def _view(self, definition: TypeDefinition) -> ModelView:
        schema = definition.schema
        if definition.is_alias:
            return self._alias_view(definition)
        if schema.kind is TypeKind.ENUM:
            return self._enum_view(definition)
        if schema.kind is TypeKind.ARRAY:
            return self._array_view(definition)
        if schema.kind is TypeKind.UNION:
            return self._union_view(definition)
        return self._object_view(definition)

    def _alias_view(self, definition: TypeDefinition) -> ModelView:
        schema = definition.schema
        if schema.kind is TypeKind.REFERENCE:
            target = schema.py_type
        else:
            target = schema.annotation(quote=True)
        self._note(target)
        return ModelView(kind="alias", name=definition.name, target=target)

    def _enum_view(self, definition: TypeDefinition) -> ModelView:
        descriptor = definition.schema.enum
        if descriptor is None:
            raise SchemaResolutionError(f"enum {definition.name} has no members", definition.json_name or None)
        self.runtime_names.add("EnumModel")
        members = []
        for member in descriptor.members:
            value = float(member.value) if descriptor.base == "float" else member.value
            members.append((member.name, repr(value)))
        return ModelView(
            kind="enum",
            name=definition.name,
            doc=definition.schema.description,
            enum_base=_ENUM_BASES[descriptor.base],
            members=members,
        )

    def _array_view(self, definition: TypeDefinition) -> ModelView:
        schema = definition.schema
        self.runtime_names.add("ArrayModel")
        item = schema.items.annotation() if schema.items is not None else "Any"
        if schema.items is not None and schema.items.nullable:
            item = f"Optional[{item}]"
        annotation = f"list[{item}]"
        self._note(annotation)
        args = _constraint_args(schema, schema.constraints)
        root = FieldView("root", annotation, f"Field({', '.join(args)})" if args else "")
        if args:
            self.needs_field = True
        self.bindings.append(f"{definition.name}.model_rebuild()")
        return ModelView(kind="array", name=definition.name, doc=schema.description, fields=[root])

    def _union_view(self, definition: TypeDefinition) -> ModelView:
        union = definition.schema.union
        if union is None:
            raise SchemaResolutionError(f"union {definition.name} has no variants", definition.json_name or None)
        base = "Either" if union.encoding is UnionEncoding.EITHER else "RawUnion"
        self.runtime_names.add(base)

        accessors = []
        for index, element in enumerate(union.elements):
            suffix = element.method_suffix
            if suffix in _RESERVED_SUFFIXES:
                suffix = f"{suffix}_value"
            accessors.append(AccessorView(suffix, element.annotation, index))
            self._note(element.annotation)

        variants = ", ".join(element.annotation for element in union.elements)
        if len(union.elements) == 1:
            variants += ","
        self.bindings.append(f"{definition.name}.variants = ({variants})")
        if union.mapping:
            entries = ", ".join(f"{value!r}: {target}" for value, target in union.mapping.items())
            self.bindings.append(f"{definition.name}.mapping = {{{entries}}}")

        return ModelView(
            kind="union",
            name=definition.name,
            doc=definition.schema.description,
            union_base=base,
            discriminator=union.discriminator,
            accessors=accessors,
        )

    def _object_view(self, definition: TypeDefinition) -> ModelView:
        schema = definition.schema
        self.runtime_names.add("Model")
        bases = [base for base in schema.bases if self._is_model(base)]
        fields: list[FieldView] = []
        for prop in schema.fields:
            default = field_default(prop)
            if default.startswith("Field("):
                self.needs_field = True
            fields.append(FieldView(
                name=prop.py_name,
                annotation=prop.annotation,
                default=default,
                comment=first_line(prop.description),
            ))
            self._note(prop.annotation)
        if schema.union_type is not None:
            self.runtime_names.add("union_field")
            annotation = f"Optional[{schema.union_type}]"
            fields.append(FieldView(to_snake_case(schema.union_type), annotation, "union_field()"))
            self._note(annotation)
        if schema.additional_properties is not None:
            self.runtime_names.add("additional_properties_field")
            annotation = f"Optional[dict[str, {schema.additional_properties.annotation()}]]"
            fields.append(FieldView("additional_properties", annotation, "additional_properties_field()"))
            self._note(annotation)

        error_code = ""
        if definition.name in self.error_mapping:
            error_code = definition.get_error_response(self.error_mapping, "self", self.type_schema_map)

        self.bindings.append(f"{definition.name}.model_rebuild()")
        return ModelView(
            kind="object",
            name=definition.name,
            doc=schema.description,
            bases=bases or ["Model"],
            fields=fields,
            error_code=error_code,
        )

    def _target(self, name: str) -> TypeDefinition | None:
        seen: set[str] = set()
        definition = self.by_name.get(name)
        while definition is not None and definition.schema.kind is TypeKind.REFERENCE and name not in seen:
            seen.add(name)
            name = definition.schema.py_type
            definition = self.by_name.get(name)
        return definition

    def _is_model(self, name: str) -> bool:
        """True when ``name`` ends up at a generated model class, usable as a base."""
        target = self._target(name)
        return target is not None and target.schema.kind is TypeKind.OBJECT and not target.is_alias


def render_models(
    definitions: Iterable[TypeDefinition],
    package: str = "",
    error_mapping: Mapping[str, str] | None = None,
    context: RenderContext | None = None,
) -> str:
    """Convenience wrapper creating a ``RenderContext`` when none is given."""
    context = context or RenderContext()
    return context.render_models(list(definitions), package, error_mapping)
