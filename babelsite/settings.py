#!/usr/bin/env python3
"""
Settings loader for babelsite.
Supports configuration from babelsite.yml, babelsite.yaml, or babelsite.json files.
"""

import os
import json
import types
import yaml
from dataclasses import dataclass, field
from typing import Dict, Any, List, Mapping, Optional, Tuple

from .errors import ConfigurationError


class SiteSettings:
    """Load and manage babelsite configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'site_url': '',
        'baseurl': '',
        'site_title': None,
        'site_description': None,
        'locales': ['en'],
        'default_locale': 'en',
        'content_roots': {'en': {'page': 'content'}},
        'content_extensions': ['.md', '.markdown'],
        'exclude': [],
        'collection_prefixes': {'page': ''},
        'defaults': [],
        'output': '_site',
        'templates': '_layouts',
        'data': '_data',
        'assets': ['assets'],
        'extra_files': [],
        'feed_collection': None,
        'feed_limit': 20,
        'sitemap': False,
        'marker_file': '.nojekyll',
        'default_layout': 'default',
        'max_layout_depth': 10,
        'minify': False,
        'workers': None,
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['babelsite.yml', 'babelsite.yaml', 'babelsite.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self, config_file: Optional[str] = None) -> Dict[str, Any]:
        """
        Load settings from a configuration file if one exists.

        Args:
            config_file: Explicit config file path. When omitted the standard
                file names are searched for in ``config_dir``.

        Returns:
            Dictionary of configuration settings
        """
        if config_file:
            if not os.path.isabs(config_file):
                config_file = os.path.join(self.config_dir, config_file)
            if not os.path.exists(config_file):
                raise ConfigurationError(f"Configuration file not found: {config_file}")
        else:
            config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            if not isinstance(loaded_settings, dict):
                raise ConfigurationError(
                    f"Configuration file {config_file} must contain a mapping at the top level"
                )
            # Merge with defaults, giving preference to loaded settings
            self.settings.update(loaded_settings)

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    return yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    return json.load(f) or {}
                else:
                    raise ConfigurationError(f"Unsupported config file format: {file_ext}")
        except PermissionError:
            raise ConfigurationError(f"Permission denied reading configuration file: {config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file {config_path}: {e}")
        except (IOError, OSError) as e:
            raise ConfigurationError(f"Error reading configuration file {config_path}: {e}")

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        sample_config = {
            'site_url': 'https://example.com',
            'site_title': 'My Multilingual Site',
            'locales': ['en', 'pt'],
            'default_locale': 'en',
            'content_roots': {
                'en': {'lesson': '_lessons', 'page': 'pages'},
                'pt': {'lesson': '_lessons_pt', 'page': 'pt'},
            },
            'collection_prefixes': {'lesson': 'lessons', 'page': ''},
            'defaults': [
                {'scope': {'collection': 'lesson'}, 'values': {'layout': 'lesson'}},
            ],
            'feed_collection': 'lesson',
            'sitemap': True,
        }

        filename = f'babelsite.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# babelsite configuration file\n\n")
                    yaml.safe_dump(sample_config, f, sort_keys=False, allow_unicode=True)
                elif file_format == 'json':
                    json.dump(sample_config, f, indent=2)
                else:
                    raise ConfigurationError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise ConfigurationError(f"Permission denied creating configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise ConfigurationError(f"Error writing configuration file {config_path}: {e}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = self.settings.copy()

        # Override with non-None command line arguments
        for key, value in args_dict.items():
            if value is not None:
                merged[key] = value

        return merged


@dataclass(frozen=True)
class ContentRoot:
    """A directory holding the content of one collection in one locale."""

    locale: str
    collection: str
    path: str


@dataclass(frozen=True)
class ScopedDefault:
    """Front matter values applied to every page matching a scope."""

    values: Mapping[str, Any]
    collection: Optional[str] = None
    locale: Optional[str] = None
    path: Optional[str] = None

    def matches(self, locale, collection, relative_path):
        if self.collection is not None and self.collection != collection:
            return False
        if self.locale is not None and self.locale != locale:
            return False
        if self.path and not relative_path.replace(os.sep, '/').startswith(self.path.strip('/')):
            return False
        return True


def _as_list(value) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _resolve(source_dir, path):
    path = os.path.expanduser(path)
    if os.path.isabs(path):
        return os.path.normpath(path)
    return os.path.normpath(os.path.join(source_dir, path))


@dataclass(frozen=True)
class SiteConfig:
    """
    Immutable, process-wide site configuration.

    Built once by ``SiteConfig.from_settings`` and shared read-only by every
    pipeline component. Directory fields are absolute paths.
    """

    source_dir: str
    output_dir: str
    templates_dir: str
    data_dir: str
    locales: Tuple[str, ...]
    default_locale: str
    content_roots: Tuple[ContentRoot, ...]
    site_url: str = ''
    baseurl: str = ''
    site_title: Optional[str] = None
    site_description: Optional[str] = None
    content_extensions: Tuple[str, ...] = ('.md', '.markdown')
    exclude: Tuple[str, ...] = ()
    collection_prefixes: Mapping[str, str] = field(default_factory=lambda: types.MappingProxyType({}))
    defaults: Tuple[ScopedDefault, ...] = ()
    asset_dirs: Tuple[str, ...] = ()
    extra_files: Tuple[str, ...] = ()
    feed_collection: Optional[str] = None
    feed_limit: int = 20
    sitemap: bool = False
    marker_file: str = '.nojekyll'
    default_layout: str = 'default'
    max_layout_depth: int = 10
    minify: bool = False
    workers: Optional[int] = None

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], source_dir: str = '.') -> 'SiteConfig':
        """
        Validate merged settings and turn them into a SiteConfig.

        Raises:
            ConfigurationError: if locales, roots or defaults are inconsistent.
        """
        source_dir = os.path.abspath(source_dir)

        locales = tuple(str(code) for code in _as_list(settings.get('locales')))
        if not locales:
            raise ConfigurationError("At least one locale must be configured")
        if len(set(locales)) != len(locales):
            raise ConfigurationError(f"Duplicate locale codes in {list(locales)}")
        default_locale = str(settings.get('default_locale') or locales[0])
        if default_locale not in locales:
            raise ConfigurationError(
                f"Default locale '{default_locale}' is not one of the configured locales {list(locales)}"
            )

        roots_setting = settings.get('content_roots') or {}
        if not isinstance(roots_setting, dict):
            raise ConfigurationError("'content_roots' must map locales to collections")
        content_roots = []
        for locale, collections in roots_setting.items():
            locale = str(locale)
            if locale not in locales:
                raise ConfigurationError(f"Content roots configured for unknown locale '{locale}'")
            if not isinstance(collections, dict):
                raise ConfigurationError(
                    f"Content roots for locale '{locale}' must map collection names to paths"
                )
            for collection, paths in collections.items():
                for path in _as_list(paths):
                    content_roots.append(ContentRoot(locale, str(collection), _resolve(source_dir, str(path))))

        prefixes = settings.get('collection_prefixes') or {}
        if not isinstance(prefixes, dict):
            raise ConfigurationError("'collection_prefixes' must be a mapping")

        defaults = []
        for entry in _as_list(settings.get('defaults')):
            if not isinstance(entry, dict) or not isinstance(entry.get('values', {}), dict):
                raise ConfigurationError(f"Invalid front matter defaults entry: {entry!r}")
            scope = entry.get('scope') or {}
            defaults.append(ScopedDefault(
                values=types.MappingProxyType(dict(entry.get('values') or {})),
                collection=scope.get('collection'),
                locale=scope.get('locale'),
                path=scope.get('path') or None,
            ))

        extensions = tuple(
            ext.lower() if ext.startswith('.') else f'.{ext.lower()}'
            for ext in _as_list(settings.get('content_extensions'))
        )

        try:
            feed_limit = int(settings.get('feed_limit') or 20)
            max_depth = int(settings.get('max_layout_depth') or 10)
            workers = int(settings['workers']) if settings.get('workers') else None
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}")

        return cls(
            source_dir=source_dir,
            output_dir=_resolve(source_dir, str(settings.get('output') or '_site')),
            templates_dir=_resolve(source_dir, str(settings.get('templates') or '_layouts')),
            data_dir=_resolve(source_dir, str(settings.get('data') or '_data')),
            locales=locales,
            default_locale=default_locale,
            content_roots=tuple(content_roots),
            site_url=str(settings.get('site_url') or '').rstrip('/'),
            baseurl=str(settings.get('baseurl') or '').rstrip('/'),
            site_title=settings.get('site_title'),
            site_description=settings.get('site_description'),
            content_extensions=extensions or ('.md',),
            exclude=tuple(str(p) for p in _as_list(settings.get('exclude'))),
            collection_prefixes=types.MappingProxyType(
                {str(k): str(v or '').strip('/') for k, v in prefixes.items()}
            ),
            defaults=tuple(defaults),
            asset_dirs=tuple(_resolve(source_dir, str(p)) for p in _as_list(settings.get('assets'))),
            extra_files=tuple(_resolve(source_dir, str(p)) for p in _as_list(settings.get('extra_files'))),
            feed_collection=settings.get('feed_collection'),
            feed_limit=max(1, feed_limit),
            sitemap=bool(settings.get('sitemap')),
            marker_file=str(settings.get('marker_file') or '.nojekyll'),
            default_layout=str(settings.get('default_layout') or 'default'),
            max_layout_depth=max(1, max_depth),
            minify=bool(settings.get('minify')),
            workers=workers,
        )

    def locale_prefix(self, locale: str) -> str:
        """URL prefix for a locale: empty for the default locale, '/xx' otherwise."""
        if locale == self.default_locale:
            return ''
        return f'/{locale}'

    def collection_prefix(self, collection: str) -> str:
        return self.collection_prefixes.get(collection, collection)

    def roots_for(self, locale: str) -> List[ContentRoot]:
        return [root for root in self.content_roots if root.locale == locale]

    def defaults_for(self, locale, collection, relative_path) -> Dict[str, Any]:
        """Merge every scoped default matching a page, later entries winning."""
        merged = {}
        for scoped in self.defaults:
            if scoped.matches(locale, collection, relative_path):
                merged.update(scoped.values)
        return merged
