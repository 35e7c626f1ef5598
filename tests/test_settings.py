"""Tests for settings loading and SiteConfig validation."""

import os
import json
import pytest

from babelsite.errors import ConfigurationError
from babelsite.settings import SiteConfig, SiteSettings


class TestSiteSettings:
    """Test cases for the settings file loader."""

    def test_defaults_without_config_file(self, temp_dir):
        """Test that defaults are returned when no config file exists."""
        loader = SiteSettings(temp_dir)
        settings = loader.load_settings()

        assert settings['output'] == '_site'
        assert settings['marker_file'] == '.nojekyll'
        assert loader.config_file_path is None

    def test_yaml_preferred_over_json(self, temp_dir):
        """Test that babelsite.yml wins over babelsite.json."""
        with open(os.path.join(temp_dir, 'babelsite.yml'), 'w', encoding='utf-8') as f:
            f.write("site_title: From YAML\n")
        with open(os.path.join(temp_dir, 'babelsite.json'), 'w', encoding='utf-8') as f:
            json.dump({'site_title': 'From JSON'}, f)

        settings = SiteSettings(temp_dir).load_settings()
        assert settings['site_title'] == 'From YAML'

    def test_json_config(self, temp_dir):
        """Test loading a JSON config file."""
        with open(os.path.join(temp_dir, 'babelsite.json'), 'w', encoding='utf-8') as f:
            json.dump({'locales': ['en', 'es'], 'feed_limit': 5}, f)

        settings = SiteSettings(temp_dir).load_settings()
        assert settings['locales'] == ['en', 'es']
        assert settings['feed_limit'] == 5
        assert settings['templates'] == '_layouts'

    def test_invalid_yaml_raises(self, temp_dir):
        """Test that an unparseable config file stops the build immediately."""
        with open(os.path.join(temp_dir, 'babelsite.yml'), 'w', encoding='utf-8') as f:
            f.write("locales: [en, pt\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            SiteSettings(temp_dir).load_settings()

    def test_non_mapping_config_raises(self, temp_dir):
        """Test that a config file holding a list is rejected."""
        with open(os.path.join(temp_dir, 'babelsite.yml'), 'w', encoding='utf-8') as f:
            f.write("- en\n- pt\n")

        with pytest.raises(ConfigurationError, match="mapping"):
            SiteSettings(temp_dir).load_settings()

    def test_explicit_missing_config_file(self, temp_dir):
        """Test that an explicitly named config file must exist."""
        with pytest.raises(ConfigurationError, match="not found"):
            SiteSettings(temp_dir).load_settings('custom.yml')

    def test_merge_with_args_ignores_none(self, temp_dir):
        """Test command-line values override only when set."""
        loader = SiteSettings(temp_dir)
        loader.load_settings()
        merged = loader.merge_with_args({'output': '/tmp/public', 'site_title': None})

        assert merged['output'] == '/tmp/public'
        assert merged['site_title'] is None

    def test_create_sample_config_round_trips(self, temp_dir):
        """Test that the sample config can be loaded and validated."""
        loader = SiteSettings(temp_dir)
        path = loader.create_sample_config('yml')

        assert os.path.basename(path) == 'babelsite.yml'
        settings = SiteSettings(temp_dir).load_settings()
        config = SiteConfig.from_settings(settings, temp_dir)
        assert config.locales == ('en', 'pt')
        assert config.collection_prefix('lesson') == 'lessons'


class TestSiteConfig:
    """Test cases for SiteConfig construction."""

    def test_paths_resolved_against_source(self, site_config, site_source):
        """Test that relative directories become absolute under the source dir."""
        assert site_config.output_dir == os.path.join(site_source, '_site')
        assert site_config.templates_dir == os.path.join(site_source, '_layouts')
        roots = {(r.locale, r.collection): r.path for r in site_config.content_roots}
        assert roots[('pt', 'lesson')] == os.path.join(site_source, '_lessons_pt')

    def test_default_locale_must_be_configured(self, make_config):
        """Test that the default locale must be one of the locales."""
        with pytest.raises(ConfigurationError, match="Default locale"):
            make_config(default_locale='fr')

    def test_roots_for_unknown_locale(self, make_config):
        """Test that content roots may only name configured locales."""
        with pytest.raises(ConfigurationError, match="unknown locale"):
            make_config(content_roots={'de': {'lesson': '_lessons'}})

    def test_locale_prefix(self, site_config):
        """Test that only non-default locales get a URL prefix."""
        assert site_config.locale_prefix('en') == ''
        assert site_config.locale_prefix('pt') == '/pt'

    def test_collection_prefix_defaults_to_name(self, site_config):
        """Test collections without a mapping use their own name."""
        assert site_config.collection_prefix('lesson') == 'lessons'
        assert site_config.collection_prefix('page') == ''
        assert site_config.collection_prefix('guide') == 'guide'

    def test_config_is_immutable(self, site_config):
        """Test that SiteConfig cannot be modified after construction."""
        with pytest.raises(Exception):
            site_config.default_locale = 'pt'
        with pytest.raises(TypeError):
            site_config.collection_prefixes['lesson'] = 'other'

    def test_scoped_defaults(self, make_config):
        """Test that later matching defaults override earlier ones."""
        config = make_config(defaults=[
            {'scope': {'collection': 'lesson'}, 'values': {'layout': 'lesson', 'badge': 'en'}},
            {'scope': {'collection': 'lesson', 'locale': 'pt'}, 'values': {'badge': 'pt'}},
            {'scope': {'path': 'pages'}, 'values': {'layout': 'default'}},
        ])

        assert config.defaults_for('en', 'lesson', '_lessons/intro.md') == {'layout': 'lesson', 'badge': 'en'}
        assert config.defaults_for('pt', 'lesson', '_lessons_pt/intro.md') == {'layout': 'lesson', 'badge': 'pt'}
        assert config.defaults_for('en', 'page', 'pages/about.md') == {'layout': 'default'}

    def test_extensions_normalized(self, make_config):
        """Test content extensions get a leading dot and are lowercased."""
        config = make_config(content_extensions=['MD', '.txt'])
        assert config.content_extensions == ('.md', '.txt')
