"""oapi-typegen: OpenAPI schema to pydantic model generator."""

__version__ = "0.1.0"
