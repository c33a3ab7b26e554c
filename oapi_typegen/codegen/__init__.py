"""Schema resolution, document preparation and rendering of model modules."""

from .configuration import Configuration, load_configuration
from .document import create_document, prepare_document
from .generator import GenerationResult, generate
from .render import RenderContext, render_models
from .resolver import ResolveOptions, SchemaResolver
from .type_tracker import TypeTracker

__all__ = [
    "Configuration",
    "GenerationResult",
    "RenderContext",
    "ResolveOptions",
    "SchemaResolver",
    "TypeTracker",
    "create_document",
    "generate",
    "load_configuration",
    "prepare_document",
    "render_models",
]
