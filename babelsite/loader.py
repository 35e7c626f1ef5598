"""
Content discovery: walk each locale's content roots and yield raw source files.
"""

import os
import fnmatch
import logging

from .errors import FileSystemError

logger = logging.getLogger('babelsite.loader')


class ContentLoader:
    """Find eligible content files under the roots configured for a locale."""

    def __init__(self, config):
        self.config = config
        # Generated and template directories never hold content even when
        # they sit under a content root. Real paths, to match the walk.
        self.source_dir = os.path.realpath(config.source_dir)
        self.reserved_dirs = {
            os.path.realpath(config.output_dir),
            os.path.realpath(config.templates_dir),
            os.path.realpath(config.data_dir),
        }
        self.reserved_dirs.update(os.path.realpath(d) for d in config.asset_dirs)

    def is_content_file(self, filename):
        return os.path.splitext(filename)[1].lower() in self.config.content_extensions

    def is_excluded(self, path):
        """Check a path against the configured exclude list.

        Patterns are matched against the path relative to the source directory.
        Plain entries exclude by prefix; entries containing ``*`` are globs.
        """
        relative = os.path.relpath(os.path.realpath(path), self.source_dir).replace(os.sep, '/')
        name = os.path.basename(path)
        for pattern in self.config.exclude:
            pattern = pattern.replace(os.sep, '/')
            if '*' in pattern or '?' in pattern:
                if fnmatch.fnmatch(relative, pattern) or fnmatch.fnmatch(name, pattern):
                    return True
            else:
                stripped = pattern.rstrip('/')
                if relative == stripped or relative.startswith(stripped + '/'):
                    return True
        return False

    def iter_root(self, root):
        """
        Lazily yield ``(source_path, raw_text)`` for every content file in a root.

        Raises:
            FileSystemError: if the root does not exist or is not a directory.
        """
        root_path = os.path.realpath(root.path)
        if not os.path.isdir(root_path):
            raise FileSystemError(root.path)

        for dirpath, dirnames, filenames in os.walk(root_path, onerror=self._walk_error):
            # Prune in place so os.walk never descends into skipped directories.
            dirnames[:] = sorted(
                d for d in dirnames
                if not d.startswith('.')
                and os.path.join(dirpath, d) not in self.reserved_dirs
                and not self.is_excluded(os.path.join(dirpath, d))
            )
            for filename in sorted(filenames):
                if filename.startswith('.') or not self.is_content_file(filename):
                    continue
                source_path = os.path.join(dirpath, filename)
                if self.is_excluded(source_path):
                    logger.debug(f"Excluded content file: {source_path}")
                    continue
                real_path = os.path.realpath(source_path)
                if os.path.commonpath([real_path, root_path]) != root_path:
                    logger.debug(f"Skipping file outside content root: {source_path}")
                    continue
                yield source_path, self.read_file(source_path)

    def iter_locale(self, locale):
        """Yield ``(root, source_path, raw_text)`` across every root of a locale."""
        for root in self.config.roots_for(locale):
            for source_path, raw_text in self.iter_root(root):
                yield root, source_path, raw_text

    def check_roots(self):
        """Fail fast if any configured content root is missing."""
        for root in self.config.content_roots:
            if not os.path.isdir(root.path):
                raise FileSystemError(root.path)

    @staticmethod
    def read_file(path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return f.read()
        except (IOError, OSError, UnicodeDecodeError) as e:
            raise FileSystemError(path, f"Failed to read content file {path}: {e}")

    @staticmethod
    def _walk_error(error):
        raise FileSystemError(error.filename or '', f"Failed to read directory: {error}")
