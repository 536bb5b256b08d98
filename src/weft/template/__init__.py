"""Template namespaces and their options."""

from weft.template.core import Namespace, Parser, Template
from weft.template.options import MissingKey, Options

__all__ = ["MissingKey", "Namespace", "Options", "Parser", "Template"]
