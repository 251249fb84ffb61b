"""Handlers package initialization."""

from webgen.handlers.generate_handler import handle_generate, stream_generate
from webgen.handlers.project_handler import handle_generate_project, handle_plan_project

__all__ = [
    "handle_generate",
    "stream_generate",
    "handle_generate_project",
    "handle_plan_project",
]
