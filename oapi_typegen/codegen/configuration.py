"""Generator configuration, loaded from a kebab-case YAML file."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Final, Mapping

import yaml

from ..shared.errors import ConfigurationError
from ..shared.naming import NameNormalizer

DEFAULT_RESPONSE_SUFFIX: Final[str] = "Response"
DEFAULT_OUTPUT_FILENAME: Final[str] = "models.py"


def _strings(value: Any, key: str, problems: list[str]) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        problems.append(f"'{key}' must be a list of strings")
        return ()
    return tuple(str(item) for item in value)


@dataclass(frozen=True, slots=True)
class GenerateOptions:
    models: bool = False
    client: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.models or self.client)


@dataclass(frozen=True, slots=True)
class OutputConfig:
    directory: str = ""
    filename: str = ""
    use_single_file: bool = True


@dataclass(frozen=True, slots=True)
class FilterParamsConfig:
    """One side (include or exclude) of the document filter."""

    paths: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    operation_ids: tuple[str, ...] = ()
    schema_properties: dict[str, tuple[str, ...]] = field(default_factory=dict)
    extensions: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.paths or self.tags or self.operation_ids or self.schema_properties or self.extensions)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None, prefix: str, problems: list[str]) -> FilterParamsConfig:
        data = data or {}
        raw_properties = data.get("schema-properties") or {}
        schema_properties: dict[str, tuple[str, ...]] = {}
        if not isinstance(raw_properties, Mapping):
            problems.append(f"'{prefix}.schema-properties' must be a mapping")
        else:
            for schema_name, names in raw_properties.items():
                schema_properties[str(schema_name)] = _strings(
                    names, f"{prefix}.schema-properties.{schema_name}", problems,
                )
        return cls(
            paths=_strings(data.get("paths"), f"{prefix}.paths", problems),
            tags=_strings(data.get("tags"), f"{prefix}.tags", problems),
            operation_ids=_strings(data.get("operation-ids"), f"{prefix}.operation-ids", problems),
            schema_properties=schema_properties,
            extensions=_strings(data.get("extensions"), f"{prefix}.extensions", problems),
        )


@dataclass(frozen=True, slots=True)
class FilterConfig:
    include: FilterParamsConfig = field(default_factory=FilterParamsConfig)
    exclude: FilterParamsConfig = field(default_factory=FilterParamsConfig)

    @property
    def is_empty(self) -> bool:
        return self.include.is_empty and self.exclude.is_empty


@dataclass(frozen=True, slots=True)
class Configuration:
    """Everything that controls one generation run.

    Example YAML::

        package: petstore
        generate:
          models: true
        output:
          directory: generated
          filename: models.py
        filter:
          include:
            tags: [pets]
        exclude-schemas: [Internal]
        name-normalizer: ToCamelCaseWithInitialisms
        error-mapping:
          ServiceError: errorData.message
    """

    package: str = ""
    generate: GenerateOptions = field(default_factory=GenerateOptions)
    output: OutputConfig | None = None
    filter: FilterConfig = field(default_factory=FilterConfig)
    skip_prune: bool = False
    exclude_schemas: tuple[str, ...] = ()
    response_type_suffix: str = ""
    name_normalizer: str = ""
    additional_initialisms: tuple[str, ...] = ()
    error_mapping: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> Configuration:
        """Build a configuration from parsed YAML.

        Raises:
            ConfigurationError: If a value has the wrong shape.
        """
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise ConfigurationError(["configuration must be a mapping"])

        problems: list[str] = []
        generate = data.get("generate") or {}
        output = data.get("output")
        filter_data = data.get("filter") or {}
        error_mapping = data.get("error-mapping") or {}
        if not isinstance(error_mapping, Mapping):
            problems.append("'error-mapping' must be a mapping")
            error_mapping = {}

        config = cls(
            package=str(data.get("package") or ""),
            generate=GenerateOptions(
                models=bool(generate.get("models", False)),
                client=bool(generate.get("client", False)),
            ),
            output=OutputConfig(
                directory=str(output.get("directory") or ""),
                filename=str(output.get("filename") or ""),
                use_single_file=bool(output.get("use-single-file", True)),
            ) if isinstance(output, Mapping) else None,
            filter=FilterConfig(
                include=FilterParamsConfig.from_mapping(filter_data.get("include"), "filter.include", problems),
                exclude=FilterParamsConfig.from_mapping(filter_data.get("exclude"), "filter.exclude", problems),
            ),
            skip_prune=bool(data.get("skip-prune", False)),
            exclude_schemas=_strings(data.get("exclude-schemas"), "exclude-schemas", problems),
            response_type_suffix=str(data.get("response-type-suffix") or ""),
            name_normalizer=str(data.get("name-normalizer") or ""),
            additional_initialisms=_strings(data.get("additional-initialisms"), "additional-initialisms", problems),
            error_mapping=dict(error_mapping),
        )
        if problems:
            raise ConfigurationError(problems)
        return config

    def validate(self) -> None:
        """Check the configuration for contradictions.

        Raises:
            ConfigurationError: Listing every problem found.
        """
        if not self.package:
            raise ConfigurationError(["package name must be specified"])

        problems: list[str] = []
        try:
            normalizer = NameNormalizer(self.name_normalizer)
        except ValueError:
            problems.append(f"`name-normalizer` '{self.name_normalizer}' is not supported")
            normalizer = None
        if self.additional_initialisms and normalizer is not NameNormalizer.TO_CAMEL_CASE_WITH_INITIALISMS:
            problems.append(
                "`additional-initialisms` is set but `name-normalizer` is not `ToCamelCaseWithInitialisms`"
            )
        for type_name, path in self.error_mapping.items():
            if not isinstance(path, str):
                problems.append(f"`error-mapping` for {type_name} must be a string path")
        if self.output is not None and not self.output.use_single_file:
            problems.append("`output.use-single-file: false` is not supported, models are written to one module")
        if problems:
            raise ConfigurationError(problems)

    def with_defaults(self) -> Configuration:
        """Fill unset values: models generation, response suffix and output filename."""
        config = self
        if config.generate.is_empty:
            config = replace(config, generate=GenerateOptions(models=True))
        if not config.response_type_suffix:
            config = replace(config, response_type_suffix=DEFAULT_RESPONSE_SUFFIX)
        if config.output is not None and not config.output.filename:
            config = replace(config, output=replace(config.output, filename=DEFAULT_OUTPUT_FILENAME))
        return config

    @property
    def normalizer(self) -> NameNormalizer:
        return NameNormalizer(self.name_normalizer)

    @property
    def output_path(self) -> Path | None:
        if self.output is None:
            return None
        return Path(self.output.directory or ".") / (self.output.filename or DEFAULT_OUTPUT_FILENAME)


def load_configuration(path: Path) -> Configuration:
    """Read a YAML configuration file.

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except OSError as err:
        raise ConfigurationError([f"cannot read configuration: {err}"], str(path)) from err
    except yaml.YAMLError as err:
        raise ConfigurationError([f"invalid YAML: {err}"], str(path)) from err
    try:
        return Configuration.from_mapping(data)
    except ConfigurationError as err:
        raise ConfigurationError(err.problems, str(path)) from err
