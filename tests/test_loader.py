"""Tests for content discovery."""

import os
import types
import pytest

from babelsite.errors import FileSystemError
from babelsite.loader import ContentLoader
from babelsite.settings import ContentRoot, SiteConfig

from conftest import write


class TestContentLoader:
    """Test cases for ContentLoader."""

    def test_iter_root_is_lazy(self, site_config):
        """Test that iter_root returns a generator."""
        loader = ContentLoader(site_config)
        root = site_config.roots_for('en')[0]
        assert isinstance(loader.iter_root(root), types.GeneratorType)

    def test_yields_content_files(self, site_config, site_source):
        """Test that every markdown file in a root is yielded with its text."""
        loader = ContentLoader(site_config)
        root = ContentRoot('en', 'lesson', os.path.join(site_source, '_lessons'))

        items = list(loader.iter_root(root))

        assert [os.path.basename(path) for path, _ in items] == ['intro.md', 'variables.md']
        assert 'Hello **world**.' in items[0][1]

    def test_skips_other_extensions_and_hidden_files(self, site_config, site_source):
        """Test that non-content and hidden files are ignored."""
        write(os.path.join(site_source, '_lessons', 'notes.txt'), 'not content')
        write(os.path.join(site_source, '_lessons', '.draft.md'), 'hidden')
        write(os.path.join(site_source, '_lessons', '.cache', 'x.md'), 'hidden dir')
        loader = ContentLoader(site_config)

        names = [os.path.basename(p) for p, _ in loader.iter_root(site_config.roots_for('en')[0])]
        assert names == ['intro.md', 'variables.md']

    def test_nested_directories(self, site_config, site_source):
        """Test that subdirectories of a root are walked."""
        write(os.path.join(site_source, '_lessons', 'advanced', 'traits.md'), 'Traits.')
        loader = ContentLoader(site_config)

        paths = [p for p, _ in loader.iter_root(site_config.roots_for('en')[0])]
        assert os.path.join(site_source, '_lessons', 'advanced', 'traits.md') in paths

    def test_excluded_directories(self, make_config, site_source):
        """Test that excluded prefixes and globs are skipped."""
        write(os.path.join(site_source, '_lessons', 'drafts', 'wip.md'), 'WIP')
        write(os.path.join(site_source, '_lessons', 'README.md'), 'readme')
        config = make_config(exclude=['_lessons/drafts', 'README*'])
        loader = ContentLoader(config)

        names = [os.path.basename(p) for p, _ in loader.iter_root(config.roots_for('en')[0])]
        assert names == ['intro.md', 'variables.md']

    def test_output_dir_inside_root_is_skipped(self, make_config, site_source):
        """Test that a previous build inside a content root is never re-read."""
        write(os.path.join(site_source, 'pages', '_site', 'stale.md'), 'stale')
        config = make_config(output=os.path.join('pages', '_site'))
        loader = ContentLoader(config)
        page_root = [r for r in config.roots_for('en') if r.collection == 'page'][0]

        names = [os.path.basename(p) for p, _ in loader.iter_root(page_root)]
        assert 'stale.md' not in names

    def test_output_dir_skipped_when_source_is_a_symlink(self, site_source, site_settings, tmp_path):
        """Test reserved directories are pruned when the source is reached through a link."""
        write(os.path.join(site_source, 'pages', '_site', 'stale.md'), 'stale')
        link = str(tmp_path / 'linked-site')
        os.symlink(site_source, link)
        settings = dict(site_settings, output=os.path.join('pages', '_site'))
        config = SiteConfig.from_settings(settings, link)
        loader = ContentLoader(config)
        page_root = [r for r in config.roots_for('en') if r.collection == 'page'][0]

        names = [os.path.basename(p) for p, _ in loader.iter_root(page_root)]
        assert 'stale.md' not in names
        assert names

    def test_missing_root_raises(self, site_config, temp_dir):
        """Test that a missing content root is a FileSystemError."""
        loader = ContentLoader(site_config)
        root = ContentRoot('en', 'lesson', os.path.join(temp_dir, 'nope'))

        with pytest.raises(FileSystemError, match="nope"):
            list(loader.iter_root(root))

    def test_empty_root_yields_nothing(self, site_config, temp_dir):
        """Test that an empty directory is valid and produces no items."""
        empty = os.path.join(temp_dir, 'empty')
        os.makedirs(empty)
        loader = ContentLoader(site_config)

        assert list(loader.iter_root(ContentRoot('en', 'lesson', empty))) == []

    def test_iter_locale_covers_all_roots(self, site_config):
        """Test iter_locale tags every file with its root."""
        loader = ContentLoader(site_config)
        collections = sorted({root.collection for root, _, _ in loader.iter_locale('en')})
        assert collections == ['lesson', 'page']

    def test_check_roots(self, make_config):
        """Test check_roots fails on the first missing root."""
        config = make_config(content_roots={'en': {'lesson': '_lessons', 'page': 'missing'}})
        with pytest.raises(FileSystemError):
            ContentLoader(config).check_roots()
