"""
babelsite - A multilingual static site generator.

babelsite takes locale-scoped Markdown content with YAML front matter and
renders it through Jinja2 layouts into a tree of clean-URL HTML pages, with
the default locale at the site root and every other locale under its own
prefix. It also copies static assets and writes an RSS feed, an optional
sitemap and a marker file telling the host not to post-process the output.
"""

__version__ = "1.0.0"

from .core import Site
from .errors import (
    BuildError,
    BuildFailed,
    ConfigurationError,
    FileSystemError,
    LayoutCycleError,
    MalformedFrontMatterError,
    RouteCollisionError,
    TemplateRenderError,
    UnknownLayoutError,
)
from .settings import SiteConfig, SiteSettings

__all__ = [
    'Site',
    'SiteConfig',
    'SiteSettings',
    'BuildError',
    'BuildFailed',
    'ConfigurationError',
    'FileSystemError',
    'LayoutCycleError',
    'MalformedFrontMatterError',
    'RouteCollisionError',
    'TemplateRenderError',
    'UnknownLayoutError',
]
