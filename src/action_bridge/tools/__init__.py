from .batch import BatchActionsExecutor
from .definitions import BATCH_KINDS, DEFAULT_TOOLS, ToolKind, build_default_registry
from .handlers import HANDLERS, Handler, HandlerContext
from .previews import PREVIEW_BUILDERS, build_preview

__all__ = [
    "BATCH_KINDS",
    "DEFAULT_TOOLS",
    "HANDLERS",
    "PREVIEW_BUILDERS",
    "BatchActionsExecutor",
    "Handler",
    "HandlerContext",
    "ToolKind",
    "build_default_registry",
    "build_preview",
]
