"""
Permalink computation.

Every page is served as a directory with an ``index.html`` default document:
``{locale prefix}/{collection prefix}/{slug}/``. The default locale has no
prefix, so its content lives at the site root.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List

from .errors import RouteCollisionError

logger = logging.getLogger('babelsite.router')

INDEX_SLUG = 'index'
INDEX_DOCUMENT = 'index.html'


@dataclass(frozen=True)
class Route:
    """Site-relative output file path and public URL of a page."""

    output_path: str
    public_url: str


def url_from_segments(segments) -> str:
    segments = [s for s in segments if s]
    if not segments:
        return '/'
    return '/' + '/'.join(segments) + '/'


class Router:
    """Assign routes to pages and index them for cross-locale lookups."""

    def __init__(self, config):
        self.config = config
        self._translations = {}

    def locale_root(self, locale: str) -> str:
        return url_from_segments([self.config.locale_prefix(locale).strip('/')])

    def route_for(self, page) -> Route:
        """Compute the route of a single page. Pure and deterministic."""
        locale_segment = self.config.locale_prefix(page.locale).strip('/')
        permalink = page.metadata.get_string('permalink')
        if permalink:
            path_segments = [s for s in permalink.strip().split('/') if s and s != '.']
        else:
            path_segments = self.config.collection_prefix(page.collection).split('/')
            if page.slug != INDEX_SLUG:
                path_segments.append(page.slug)

        public_url = url_from_segments([locale_segment] + path_segments)
        output_path = public_url + INDEX_DOCUMENT
        return Route(output_path=output_path, public_url=public_url)

    def route_all(self, pages: Iterable) -> List[RouteCollisionError]:
        """
        Route every page and return the collisions found across the whole set:
        shared output paths first, then shared page keys.

        Collisions are a property of the complete set, so they are reported only
        after every page has a route.
        """
        pages = list(pages)
        for page in pages:
            page.route = self.route_for(page)

        self._translations = {}
        for page in sorted(pages, key=lambda p: (p.route.output_path, p.source_path)):
            group = self._translations.setdefault((page.collection, page.translation_key), OrderedDict())
            group.setdefault(page.locale, page.route.public_url)

        collisions = find_collisions(pages)
        # Same-key pages on one path are already reported by the path check.
        reported = {tuple(c.source_paths) for c in collisions}
        collisions.extend(
            d for d in find_duplicate_keys(pages) if tuple(d.source_paths) not in reported
        )
        return collisions

    def language_urls(self, page) -> Dict[str, str]:
        """
        URL of this page's equivalent in every configured locale.

        Locales lacking an equivalent fall back to their root URL.
        """
        group = self._translations.get((page.collection, page.translation_key), {})
        urls = OrderedDict()
        for locale in self.config.locales:
            urls[locale] = group.get(locale, self.locale_root(locale))
        if page.route is not None:
            urls[page.locale] = page.route.public_url
        return urls


def find_collisions(pages: Iterable) -> List[RouteCollisionError]:
    by_output = OrderedDict()
    for page in pages:
        by_output.setdefault(page.route.output_path, []).append(page.source_path)

    collisions = []
    for output_path, sources in by_output.items():
        if len(sources) > 1:
            collisions.append(RouteCollisionError(output_path, sorted(sources)))
    return collisions


def find_duplicate_keys(pages: Iterable) -> List[RouteCollisionError]:
    """Pages sharing a (locale, collection, slug) key, whatever their routes."""
    by_key = OrderedDict()
    for page in pages:
        by_key.setdefault(page.key, []).append(page)

    duplicates = []
    for key, group in by_key.items():
        if len(group) > 1:
            group = sorted(group, key=lambda p: p.source_path)
            duplicates.append(RouteCollisionError(
                group[0].route.output_path if group[0].route else '',
                [p.source_path for p in group],
                key=key,
            ))
    return duplicates
