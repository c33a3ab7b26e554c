"""Operation definitions: parameters, bodies and responses of each path item."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Final, Mapping, Sequence

from ..shared.errors import SchemaError, SchemaResolutionError
from .constraints import ConstraintsContext, new_constraints, schema_types
from .parameters import ParameterDefinition, describe_parameters, parameter_schema
from .payloads import RequestBodyDefinition, create_body_definition
from .responses import ResponseDefinition, describe_responses
from .schema import Field, SpecLocation, TypeDefinition, TypeKind, TypeSchema

if TYPE_CHECKING:
    from .resolver import SchemaResolver

logger = logging.getLogger(__name__)

# HTTP methods an OpenAPI path item may declare, in document order
HTTP_METHODS: Final[tuple[str, ...]] = ("get", "put", "post", "delete", "options", "head", "patch", "trace")


@dataclass(frozen=True, slots=True)
class OperationDefinition:
    """Everything the models module needs to know about one operation."""

    operation_id: str
    method: str
    path: str
    summary: str = ""
    tags: tuple[str, ...] = ()
    path_params: list[ParameterDefinition] = field(default_factory=list)
    params: list[ParameterDefinition] = field(default_factory=list)
    params_type: str | None = None
    body: RequestBodyDefinition | None = None
    responses: list[ResponseDefinition] = field(default_factory=list)

    @property
    def all_params(self) -> list[ParameterDefinition]:
        return [*self.path_params, *self.params]

    @property
    def response_type(self) -> str | None:
        for response in self.responses:
            if not response.is_error:
                return response.type_name
        return None

    @property
    def error_type(self) -> str | None:
        for response in self.responses:
            if response.is_error:
                return response.type_name
        return None


def default_operation_id(method: str, path: str) -> str:
    """Operation id for operations that declare none, eg ``get /users/{id}`` -> ``getUsersId``."""
    words = [segment.strip("{}") for segment in path.split("/") if segment]
    return method.lower() + "".join(word[:1].upper() + word[1:] for word in words)


def merge_parameters(path_level: Sequence[Any], operation_level: Sequence[Any]) -> list[Any]:
    """Combine path item and operation parameters; the operation wins on (name, in)."""

    def key(param: Any) -> tuple[str, str] | None:
        if isinstance(param, Mapping) and "$ref" not in param:
            return str(param.get("name", "")), str(param.get("in", ""))
        return None

    overridden = {key(param) for param in operation_level} - {None}
    merged = [param for param in path_level if key(param) is None or key(param) not in overridden]
    merged.extend(operation_level)
    return merged


def _params_type(
    operation_type: str,
    params: list[ParameterDefinition],
    resolver: SchemaResolver,
) -> str | None:
    """Register ``<OperationId>Params`` holding the query, header and cookie parameters."""
    if not params:
        return None
    fields: list[Field] = []
    for param in params:
        raw = parameter_schema(param.spec) or {}
        constraints = new_constraints(
            raw,
            ConstraintsContext(has_nil_type="null" in schema_types(raw), required=param.required),
        )
        fields.append(Field(
            json_name=param.param_name,
            py_name=param.py_name,
            schema=param.schema,
            constraints=constraints,
            description=str(param.spec.get("description", "")),
        ))

    tracker = resolver.tracker
    name = tracker.generate_unique_name(f"{operation_type}Params")
    tracker.register(TypeDefinition(
        name=name,
        json_name=name,
        schema=TypeSchema(TypeKind.OBJECT, fields=fields),
        location=SpecLocation.QUERY,
    ))
    return name


def operation_definitions(
    document: Mapping[str, Any],
    resolver: SchemaResolver,
    response_suffix: str = "Response",
) -> list[OperationDefinition]:
    """Describe every operation of ``document`` and register the types it owns.

    Operations are returned sorted by path and method.

    Raises:
        SchemaError: With the path and method prepended to the schema path.
    """
    resolver.prepare()
    result: list[OperationDefinition] = []
    for path, path_item in (document.get("paths") or {}).items():
        if not isinstance(path_item, Mapping):
            continue
        path_level_params = path_item.get("parameters") or []

        for method in HTTP_METHODS:
            details = path_item.get(method)
            if not isinstance(details, Mapping):
                continue
            operation_id = str(details.get("operationId") or default_operation_id(method, str(path)))
            try:
                result.append(_describe_operation(
                    operation_id, method, str(path), details, path_level_params, resolver, response_suffix,
                ))
            except SchemaError as err:
                raise err.with_path(f"{method.upper()} {path}") from err

    result.sort(key=lambda op: (op.path, HTTP_METHODS.index(op.method)))
    return result


def _describe_operation(
    operation_id: str,
    method: str,
    path: str,
    details: Mapping[str, Any],
    path_level_params: Sequence[Any],
    resolver: SchemaResolver,
    response_suffix: str,
) -> OperationDefinition:
    operation_type = resolver.type_name([operation_id])
    operation_params = details.get("parameters") or []
    if not isinstance(operation_params, list) or not isinstance(path_level_params, list):
        raise SchemaResolutionError("parameters must be a list")
    params = merge_parameters(path_level_params, operation_params)

    described = describe_parameters(params, [f"{operation_type}Params"], resolver)
    path_params = [param for param in described if param.location == "path"]
    other_params = [param for param in described if param.location != "path"]

    body, _ = create_body_definition(operation_id, details.get("requestBody"), resolver)
    responses = describe_responses(operation_id, details.get("responses"), resolver, response_suffix)
    params_type = _params_type(operation_type, other_params, resolver)

    logger.debug(
        "Operation %s: %d parameter(s), body=%s, responses=%s",
        operation_id, len(described), body.name if body else None, [r.type_name for r in responses],
    )
    return OperationDefinition(
        operation_id=operation_id,
        method=method,
        path=path,
        summary=str(details.get("summary", "")).strip(),
        tags=tuple(str(tag) for tag in details.get("tags") or ()),
        path_params=path_params,
        params=other_params,
        params_type=params_type,
        body=body,
        responses=responses,
    )
