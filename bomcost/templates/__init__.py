from .engine import (
    DATA_DIR,
    TemplateDefinition,
    TemplateEngine,
    TemplateItem,
    TemplateLibrary,
)

__all__ = [
    "DATA_DIR",
    "TemplateDefinition",
    "TemplateEngine",
    "TemplateItem",
    "TemplateLibrary",
]
