"""
Content model: split front matter from body, convert markdown, and build pages.
"""

import os
import re
import logging
import unicodedata
from collections import OrderedDict
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, date, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import mistune
import yaml

from .errors import MalformedFrontMatterError

logger = logging.getLogger('babelsite.content')

FRONT_MATTER_DELIMITER = '---'
FRONT_MATTER_CLOSERS = ('---', '...')

# Fields with a known shape; anything else is passed through untouched.
STRING_FIELDS = ('title', 'slug', 'layout', 'permalink', 'translation_key', 'prev', 'next', 'description')
NUMBER_FIELDS = ('order',)

SCALAR_TYPES = (str, int, float, bool, date, datetime)


def create_markdown_parser():
    """Create a Mistune markdown parser with a custom renderer."""
    class CustomRenderer(mistune.HTMLRenderer):
        def __init__(self):
            super().__init__(escape=False)

        def block_code(self, code, info=None):
            escaped_code = mistune.escape(code)
            if info:
                lang = mistune.escape(info.split()[0])
                return f'<pre><code class="language-{lang}">{escaped_code}</code></pre>\n'
            return f'<pre><code>{escaped_code}</code></pre>\n'

    return mistune.create_markdown(
        renderer=CustomRenderer(),
        plugins=['table', 'task_lists', 'strikethrough', 'footnotes']
    )


def slugify(text: str) -> str:
    """
    Normalize text into a URL slug.

    Unicode is decomposed (NFKD) and folded to ASCII, so "Ação Básica" becomes
    "acao-basica". Runs of anything other than ``[a-z0-9]`` collapse into a
    single hyphen. An empty result falls back to ``untitled``.
    """
    normalized = unicodedata.normalize('NFKD', str(text))
    ascii_text = normalized.encode('ascii', 'ignore').decode('ascii')
    slug = re.sub(r'[^a-z0-9]+', '-', ascii_text.lower()).strip('-')
    return slug or 'untitled'


def slug_from_path(source_path: str) -> str:
    stem = os.path.splitext(os.path.basename(source_path))[0]
    return slugify(stem)


def parse_date(value):
    """
    Parse a front matter date into a naive UTC datetime, or datetime.min if it
    can't be read. Dates with an offset are converted to UTC so every page
    date compares with every other.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        for fmt in ['%Y-%m-%dT%H:%M:%S%z', '%Y-%m-%d %H:%M:%S%z', '%Y-%m-%dT%H:%M:%S',
                    '%Y-%m-%d %H:%M:%S', '%Y-%m-%d', '%b %d, %Y']:
            try:
                parsed = datetime.strptime(value.strip(), fmt)
                break
            except ValueError:
                continue
        else:
            return datetime.min
    else:
        return datetime.min

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class FrontMatter(Mapping):
    """
    Ordered, read-only page metadata.

    Each value is one of three kinds: ``string`` (any scalar), ``list`` (a list
    of scalars) or ``opaque`` (anything else, kept exactly as parsed so that
    unknown fields round-trip into templates).
    """

    def __init__(self, items=None, positions=None):
        self._items = OrderedDict(items or ())
        # key -> (line, column) in the source file, for error reports
        self.positions = dict(positions or {})

    def __getitem__(self, key):
        return self._items[key]

    def __iter__(self):
        return iter(self._items)

    def __len__(self):
        return len(self._items)

    def __repr__(self):
        return f"FrontMatter({dict(self._items)!r})"

    @staticmethod
    def kind_of(value) -> str:
        if isinstance(value, SCALAR_TYPES):
            return 'string'
        if isinstance(value, list) and all(isinstance(v, SCALAR_TYPES) for v in value):
            return 'list'
        return 'opaque'

    def kind(self, key) -> Optional[str]:
        if key not in self._items:
            return None
        return self.kind_of(self._items[key])

    def get_string(self, key, default=None) -> Optional[str]:
        value = self._items.get(key)
        if value is None or self.kind_of(value) != 'string':
            return default
        return str(value)

    def merged_over(self, defaults: Dict[str, Any]) -> 'FrontMatter':
        """Return new metadata with ``defaults`` filling keys this block lacks."""
        items = OrderedDict(defaults)
        items.update(self._items)
        return FrontMatter(items, self.positions)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._items)


def split_front_matter(raw_text: str) -> Tuple[Optional[str], str, int]:
    """
    Split raw file text into ``(metadata_text, body, body_line)``.

    The metadata block must start on the very first line with ``---`` and is
    closed by a line holding ``---`` or ``...``. ``metadata_text`` is None when
    the file has no block. A block that is opened but never closed raises
    ValueError.
    """
    text = raw_text.lstrip('\ufeff')
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != FRONT_MATTER_DELIMITER:
        return None, text, 1

    for index in range(1, len(lines)):
        if lines[index].rstrip() in FRONT_MATTER_CLOSERS:
            metadata_text = ''.join(lines[1:index])
            body = ''.join(lines[index + 1:])
            return metadata_text, body, index + 2
    raise ValueError("front matter block is not closed")


def parse_front_matter(source_path: str, raw_text: str) -> Tuple[FrontMatter, str]:
    """
    Parse the metadata block of a file.

    Raises:
        MalformedFrontMatterError: if the block exists but is not a valid
            YAML mapping, or a known field has the wrong type.
    """
    try:
        metadata_text, body, _ = split_front_matter(raw_text)
    except ValueError as e:
        raise MalformedFrontMatterError(source_path, str(e), line=1, column=1)

    if metadata_text is None:
        return FrontMatter(), body

    try:
        loaded = yaml.safe_load(metadata_text)
    except yaml.YAMLError as e:
        mark = getattr(e, 'problem_mark', None) or getattr(e, 'context_mark', None)
        line = column = None
        if mark is not None:
            # +2: marks are zero-based and the block starts after the opening delimiter
            line = mark.line + 2
            column = mark.column + 1
        reason = getattr(e, 'problem', None) or str(e)
        raise MalformedFrontMatterError(source_path, reason, line=line, column=column)

    if loaded is None:
        return FrontMatter(), body
    if not isinstance(loaded, dict):
        raise MalformedFrontMatterError(
            source_path, f"expected a mapping, got {type(loaded).__name__}", line=2, column=1
        )

    metadata = FrontMatter(((str(k), v) for k, v in loaded.items()), key_positions(metadata_text))
    validate_front_matter(source_path, metadata)
    return metadata, body


def key_positions(metadata_text: str) -> Dict[str, Tuple[int, int]]:
    """Map each top-level key to its (line, column) in the file."""
    node = yaml.compose(metadata_text, Loader=yaml.SafeLoader)
    if not isinstance(node, yaml.MappingNode):
        return {}
    # +2: marks are zero-based and the block starts after the opening delimiter
    return {
        str(key.value): (key.start_mark.line + 2, key.start_mark.column + 1)
        for key, _ in node.value
    }


def validate_front_matter(source_path: str, metadata: FrontMatter):
    def malformed(key, reason):
        line, column = metadata.positions.get(key, (None, None))
        return MalformedFrontMatterError(source_path, reason, line=line, column=column)

    for key in STRING_FIELDS:
        if key in metadata and metadata[key] is not None and metadata.kind(key) != 'string':
            raise malformed(key, f"field '{key}' must be a string")
    for key in NUMBER_FIELDS:
        value = metadata.get(key)
        if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise malformed(key, f"field '{key}' must be a number")
    permalink = metadata.get_string('permalink')
    if permalink and '..' in permalink.split('/'):
        raise malformed('permalink', "field 'permalink' must not contain '..'")


@dataclass(eq=False)
class Page:
    """One content file, parsed and converted."""

    source_path: str
    relative_path: str
    locale: str
    collection: str
    slug: str
    metadata: FrontMatter
    body_html: str
    layout: str
    order: Optional[float] = None
    translation_key: str = ''
    route: Any = None
    previous: Optional['Page'] = None
    next: Optional['Page'] = None

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.locale, self.collection, self.slug)

    @property
    def title(self) -> str:
        return self.metadata.get_string('title') or self.slug

    @property
    def date(self) -> datetime:
        return parse_date(self.metadata.get('date'))

    def sort_key(self):
        if self.order is not None:
            return (0, self.order, self.slug)
        return (1, 0, self.slug)


class PageBuilder:
    """Turn raw ``(source_path, raw_text)`` pairs into Page records."""

    def __init__(self, config, converter: Optional[Callable[[str], str]] = None):
        self.config = config
        self.converter = converter or create_markdown_parser()

    def build(self, source_path: str, raw_text: str, locale: str, collection: str) -> Page:
        metadata, body = parse_front_matter(source_path, raw_text)

        relative_path = os.path.relpath(source_path, self.config.source_dir).replace(os.sep, '/')
        defaults = self.config.defaults_for(locale, collection, relative_path)
        if defaults:
            metadata = metadata.merged_over(defaults)
            validate_front_matter(source_path, metadata)

        explicit_slug = metadata.get_string('slug')
        slug = slugify(explicit_slug) if explicit_slug else slug_from_path(source_path)

        order = metadata.get('order')
        layout = metadata.get_string('layout') or self.config.default_layout

        page = Page(
            source_path=source_path,
            relative_path=relative_path,
            locale=locale,
            collection=collection,
            slug=slug,
            metadata=metadata,
            body_html=self.converter(body),
            layout=layout,
            order=float(order) if order is not None else None,
            translation_key=metadata.get_string('translation_key') or slug,
        )
        logger.debug(f"Parsed {source_path} as {locale}/{collection}/{slug}")
        return page


def group_collections(pages: Iterable[Page]) -> Dict[Tuple[str, str], List[Page]]:
    """
    Group pages per (locale, collection), ordered by ``order`` then slug,
    and link each page to its neighbours.
    """
    grouped = OrderedDict()
    for page in sorted(pages, key=lambda p: (p.locale, p.collection, p.sort_key(), p.source_path)):
        grouped.setdefault((page.locale, page.collection), []).append(page)

    for sequence in grouped.values():
        link_neighbours(sequence)
    return grouped


def link_neighbours(sequence: List[Page]):
    by_slug = {page.slug: page for page in sequence}
    for index, page in enumerate(sequence):
        page.previous = sequence[index - 1] if index > 0 else None
        page.next = sequence[index + 1] if index + 1 < len(sequence) else None

        for attr, meta_key in (('previous', 'prev'), ('next', 'next')):
            if meta_key not in page.metadata:
                continue
            override = page.metadata.get_string(meta_key, '')
            if not override:
                setattr(page, attr, None)
            elif slugify(override) in by_slug:
                setattr(page, attr, by_slug[slugify(override)])
            else:
                logger.warning(
                    f"{page.source_path}: '{meta_key}' names unknown page '{override}', "
                    f"keeping the computed neighbour"
                )
