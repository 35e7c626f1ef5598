"""
Error types raised by the babelsite build pipeline.

Per-file and per-page errors are collected by the site assembler and raised
together as a single ``BuildFailed`` once the whole content set has been
processed.
"""

from typing import List, Optional, Sequence


class BuildError(Exception):
    """Base class for every error the build can report."""


class ConfigurationError(BuildError):
    """Raised when settings, data or translation files cannot be used."""


class FileSystemError(BuildError):
    """Raised when a configured content root is missing or unreadable."""

    def __init__(self, path, message=None):
        self.path = str(path)
        super().__init__(message or f"Content root does not exist: {self.path}")


class MalformedFrontMatterError(BuildError):
    """Raised when a metadata block is present but cannot be parsed."""

    def __init__(self, source_path, reason, line: Optional[int] = None, column: Optional[int] = None):
        self.source_path = str(source_path)
        self.reason = reason
        self.line = line
        self.column = column
        if line is not None:
            location = f"{self.source_path}:{line}:{column or 0}"
        else:
            location = self.source_path
        super().__init__(f"Malformed front matter in {location}: {reason}")


class RouteCollisionError(BuildError):
    """
    Raised when two pages resolve to the same output path, or share the same
    (locale, collection, slug) key.
    """

    def __init__(self, output_path, source_paths: Sequence[str], key: Optional[Sequence[str]] = None):
        self.output_path = str(output_path)
        self.source_paths = [str(p) for p in source_paths]
        self.key = tuple(key) if key else None
        if self.key:
            message = f"Duplicate page {'/'.join(self.key)}: "
        else:
            message = f"Route collision at {self.output_path}: "
        super().__init__(message + ", ".join(self.source_paths))


class LayoutCycleError(BuildError):
    """Raised when a layout chain refers back to itself or never terminates."""

    def __init__(self, chain: Sequence[str], source_path=None):
        self.chain = list(chain)
        self.source_path = str(source_path) if source_path else None
        message = "Layout chain does not terminate: " + " -> ".join(self.chain)
        if self.source_path:
            message += f" (page {self.source_path})"
        super().__init__(message)


class UnknownLayoutError(BuildError):
    """Raised when a page or a layout references a layout that does not exist."""

    def __init__(self, layout, referenced_by=None):
        self.layout = layout
        self.referenced_by = str(referenced_by) if referenced_by else None
        message = f"Unknown layout '{layout}'"
        if self.referenced_by:
            message += f" referenced by {self.referenced_by}"
        super().__init__(message)


class TemplateRenderError(BuildError):
    """Raised when a layout fails to compile or to render for a page."""

    def __init__(self, layout, reason, source_path=None):
        self.layout = layout
        self.reason = str(reason)
        self.source_path = str(source_path) if source_path else None
        message = f"Template error in layout '{layout}': {self.reason}"
        if self.source_path:
            message += f" (page {self.source_path})"
        super().__init__(message)


class BuildFailed(BuildError):
    """Aggregate of every error collected during a failed build."""

    def __init__(self, errors: List[BuildError]):
        self.errors = list(errors)
        super().__init__(f"Build failed with {len(self.errors)} error(s)")
