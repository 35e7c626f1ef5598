"""
Layout resolution and rendering.

Layouts are Jinja2 templates named ``<layout>.html`` in the templates
directory. A layout names its parent with ``{% extends "parent.html" %}`` and
defines named ``{% block %}`` sections; Jinja2 substitutes child blocks into
the parent's placeholders. The chain of parents is resolved explicitly before
rendering so that unknown parents and cycles are reported as build errors
instead of surfacing as recursion inside the template engine.
"""

import os
import logging
import threading
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from jinja2 import (
    ChainableUndefined,
    Environment,
    FileSystemLoader,
    TemplateError,
    TemplateNotFound,
    TemplateSyntaxError,
    nodes,
)

from .errors import FileSystemError, LayoutCycleError, TemplateRenderError, UnknownLayoutError

logger = logging.getLogger('babelsite.templates')

TEMPLATE_EXTENSION = '.html'
CONTENT_KEY = 'content'


def layout_id(template_name: str) -> str:
    """Map a template file name to its layout identifier ('base.html' -> 'base')."""
    if template_name.endswith(TEMPLATE_EXTENSION):
        return template_name[:-len(TEMPLATE_EXTENSION)]
    return template_name


def template_name(layout: str) -> str:
    if layout.endswith(TEMPLATE_EXTENSION):
        return layout
    return layout + TEMPLATE_EXTENSION


@dataclass(frozen=True)
class Layout:
    """
    A parsed layout: its parent (None for a root layout), its block names, and
    whether it prints the page body through the ``content`` variable.
    """

    name: str
    parent: Optional[str]
    blocks: Tuple[str, ...]
    uses_content: bool = False


class TemplateSet:
    """Read-only view of the layouts in a templates directory."""

    def __init__(self, templates_dir: str, max_depth: int = 10, env: Optional[Environment] = None):
        if not os.path.isdir(templates_dir):
            raise FileSystemError(templates_dir, f"Templates directory does not exist: {templates_dir}")
        self.templates_dir = templates_dir
        self.max_depth = max_depth
        self.env = env or Environment(
            loader=FileSystemLoader(templates_dir),
            undefined=ChainableUndefined,
            keep_trailing_newline=True,
        )
        self._layouts = {}
        self._lock = threading.Lock()

    def names(self) -> List[str]:
        return sorted(layout_id(name) for name in self.env.list_templates(extensions=['html']))

    def layout(self, name: str, referenced_by=None) -> Layout:
        """
        Parse a layout declaration.

        Raises:
            UnknownLayoutError: if no template exists for ``name``.
            TemplateRenderError: if the template cannot be parsed or extends a
                parent chosen at render time.
        """
        name = layout_id(name)
        with self._lock:
            if name in self._layouts:
                return self._layouts[name]

        try:
            source, _, _ = self.env.loader.get_source(self.env, template_name(name))
        except TemplateNotFound:
            raise UnknownLayoutError(name, referenced_by)

        try:
            ast = self.env.parse(source, name=template_name(name))
        except TemplateSyntaxError as e:
            raise TemplateRenderError(name, f"line {e.lineno}: {e.message}")

        parent = None
        extends = list(ast.find_all(nodes.Extends))
        if extends:
            target = extends[0].template
            if not isinstance(target, nodes.Const) or not isinstance(target.value, str):
                raise TemplateRenderError(name, "parent layout must be a literal template name")
            parent = layout_id(target.value)

        layout = Layout(
            name=name,
            parent=parent,
            blocks=tuple(block.name for block in ast.find_all(nodes.Block)),
            uses_content=any(
                node.name == CONTENT_KEY and node.ctx == 'load' for node in ast.find_all(nodes.Name)
            ),
        )
        with self._lock:
            self._layouts[name] = layout
        return layout

    def resolve_chain(self, name: str, referenced_by=None) -> List[str]:
        """
        Follow parent references from ``name`` to the root layout.

        Returns the chain innermost first, e.g. ``['lesson', 'page', 'base']``.

        Raises:
            LayoutCycleError: if a layout recurs or the chain exceeds ``max_depth``.
            UnknownLayoutError: if any layout in the chain does not exist.
        """
        chain = []
        current = layout_id(name)
        referrer = referenced_by
        while current is not None:
            if current in chain or len(chain) >= self.max_depth:
                raise LayoutCycleError(chain + [current], referenced_by)
            layout = self.layout(current, referrer)
            chain.append(current)
            referrer = f"layout '{current}'"
            current = layout.parent
        return chain


class TemplateRenderer:
    """Render pages through their layout chain."""

    def __init__(self, config, template_set: Optional[TemplateSet] = None,
                 converter: Optional[Callable[[str], str]] = None):
        self.config = config
        self.templates = template_set or TemplateSet(config.templates_dir, config.max_layout_depth)
        self.env = self.templates.env
        self.converter = converter
        self._page_templates = {}
        self.env.filters['relative_url'] = self.relative_url
        self.env.filters['absolute_url'] = self.absolute_url
        self.env.filters['markdownify'] = self.markdownify

    def relative_url(self, url):
        """Prefix root-relative URLs with the configured base URL."""
        url = '' if url is None else str(url)
        if url.startswith('/') and not url.startswith('//'):
            return f"{self.config.baseurl}{url}"
        return url

    def absolute_url(self, url):
        url = '' if url is None else str(url)
        if '://' in url or url.startswith('//'):
            return url
        if not url.startswith('/'):
            url = '/' + url
        return f"{self.config.site_url}{self.config.baseurl}{url}"

    def markdownify(self, text):
        if not text or self.converter is None:
            return '' if text is None else str(text)
        return self.converter(str(text))

    def resolve_chain(self, page) -> List[str]:
        return self.templates.resolve_chain(page.layout, page.source_path)

    def page_template(self, page, chain: List[str]):
        """
        Template a page is rendered through.

        When no layout in the chain prints ``content``, the page becomes a
        child of the innermost layout that fills the ``content`` block (or,
        failing that, the first block of the chain) with its body.
        """
        layouts = [self.templates.layout(name) for name in chain]
        if any(layout.uses_content for layout in layouts):
            return self.env.get_template(template_name(chain[0]))

        names = [block for layout in layouts for block in layout.blocks]
        if not names:
            raise TemplateRenderError(chain[0], "layout chain has no block for the page body", page.source_path)
        block = CONTENT_KEY if CONTENT_KEY in names else names[0]

        key = (chain[0], block)
        template = self._page_templates.get(key)
        if template is None:
            template = self.env.from_string(
                f'{{% extends "{template_name(chain[0])}" %}}'
                f'{{% block {block} %}}{{{{ {CONTENT_KEY} }}}}{{% endblock %}}'
            )
            self._page_templates[key] = template
        return template

    def render(self, page, chain: List[str], context) -> str:
        """
        Render a page with an already-resolved layout chain.

        ``context`` is the page's render context; it is not retained.
        """
        try:
            return self.page_template(page, chain).render(context)
        except TemplateNotFound as e:
            raise UnknownLayoutError(layout_id(e.name), page.source_path)
        except TemplateError as e:
            raise TemplateRenderError(chain[0], e, page.source_path)

    def render_page(self, page, context) -> str:
        chain = self.resolve_chain(page)
        return self.render(page, chain, context)
