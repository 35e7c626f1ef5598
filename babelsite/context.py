"""
Data files, translation tables and per-page render contexts.
"""

import os
import json
import logging
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigurationError

logger = logging.getLogger('babelsite.context')

TRANSLATIONS_KEY = 'translations'


def load_data_files(data_dir: str) -> Dict[str, Any]:
    """
    Load every YAML/JSON file directly under ``data_dir``, keyed by file stem.

    A missing data directory is not an error; an unparseable file is.
    """
    data = {}
    if not os.path.isdir(data_dir):
        logger.debug(f"No data directory at {data_dir}")
        return data

    for filename in sorted(os.listdir(data_dir)):
        path = os.path.join(data_dir, filename)
        stem, ext = os.path.splitext(filename)
        ext = ext.lower()
        if not os.path.isfile(path) or ext not in ('.yml', '.yaml', '.json'):
            continue
        try:
            with open(path, 'r', encoding='utf-8') as f:
                if ext == '.json':
                    data[stem] = json.load(f)
                else:
                    data[stem] = yaml.safe_load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Invalid data file {path}: {e}")
        except (IOError, OSError) as e:
            raise ConfigurationError(f"Failed to read data file {path}: {e}")
        logger.debug(f"Loaded data file: {path}")
    return data


def translation_tables(data: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    tables = data.get(TRANSLATIONS_KEY) or {}
    if not isinstance(tables, dict):
        raise ConfigurationError("Translations data must map locale codes to string tables")
    return {str(locale): table or {} for locale, table in tables.items()}


def lookup(table, dotted_key: str, default=''):
    """Resolve ``nav.lessons`` style keys in a nested table; missing keys give ``default``."""
    value = table
    for part in dotted_key.split('.'):
        if not isinstance(value, dict) or part not in value:
            return default
        value = value[part]
    if value is None:
        return default
    return value


def nav_link(page) -> Optional[Dict[str, str]]:
    if page is None:
        return None
    return {
        'title': page.title,
        'url': page.route.public_url if page.route else '',
        'slug': page.slug,
    }


def site_context(config) -> Dict[str, Any]:
    return {
        'title': config.site_title or '',
        'description': config.site_description or '',
        'url': config.site_url,
        'baseurl': config.baseurl,
        'locales': list(config.locales),
        'default_locale': config.default_locale,
    }


def build_render_context(page, config, router, translations, data, siblings=()) -> Dict[str, Any]:
    """
    Build the mapping a page is rendered with.

    Later sources win: front matter keys first, then the fixed keys
    (``site``, ``t``, ``page``, ``content``, navigation). Built fresh for
    every page and discarded after rendering.
    """
    table = translations.get(page.locale, {})
    page_vars = page.metadata.to_dict()
    page_vars.update({
        'title': page.title,
        'slug': page.slug,
        'url': page.route.public_url if page.route else '',
        'locale': page.locale,
        'collection': page.collection,
        'layout': page.layout,
    })

    context = page.metadata.to_dict()
    context.update({
        'site': site_context(config),
        'data': data,
        'lang': page.locale,
        't': table,
        'translate': lambda key, default='': lookup(table, key, default),
        'page': page_vars,
        'metadata': page.metadata.to_dict(),
        'title': page.title,
        'content': page.body_html,
        'prev': nav_link(page.previous),
        'next': nav_link(page.next),
        'language_urls': router.language_urls(page),
        'collection_pages': [nav_link(sibling) for sibling in siblings],
    })
    return context
