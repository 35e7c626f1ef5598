import os
import shutil
import logging
import tempfile
import time
from datetime import datetime
from concurrent.futures import ThreadPoolExecutor, as_completed

import csscompressor
import rjsmin

from .content import PageBuilder, create_markdown_parser, group_collections
from .context import build_render_context, load_data_files, translation_tables
from .errors import BuildError, BuildFailed, FileSystemError
from .feed import FEED_FILE, SITEMAP_FILE, generate_rss_feed, generate_xml_sitemap
from .loader import ContentLoader
from .router import Router
from .templates import TemplateRenderer

# Below this many items the thread pool costs more than it saves.
PARALLEL_THRESHOLD = 12


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages to be shown in the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Starting site build",
            "Site build completed in",
            "Total pages generated:",
            "Total assets copied:",
            "Loaded configuration from",
            "Generating RSS feed",
            "Generating XML sitemap",
            "Replaced output directory",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


def setup_logging(log_dir=None, verbose=False):
    """Set up logging configuration."""
    logger = logging.getLogger('babelsite')
    logger.setLevel(logging.DEBUG)

    if not logger.handlers:
        # Console handler with filter
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        if not verbose:
            console_handler.addFilter(InfoFilter())
        console_handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(console_handler)

        # File handler for all logs
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            log_filename = datetime.now().strftime('babelsite_%Y-%m-%d_%H-%M-%S.log')
            file_handler = logging.FileHandler(os.path.join(log_dir, log_filename), encoding='utf-8')
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
            logger.addHandler(file_handler)

    return logger


class Site:
    """
    Build a site from a SiteConfig.

    The build is two-phase: every page is loaded, parsed, routed and rendered
    in memory first, with errors collected across the whole content set. Only
    if nothing failed is the output written, into a staging directory that
    then replaces the previous output tree.
    """

    def __init__(self, config, converter=None, logger=None):
        self.config = config
        self.logger = logger or logging.getLogger('babelsite')
        self.converter = converter or create_markdown_parser()
        self.loader = ContentLoader(config)
        self.builder = PageBuilder(config, self.converter)
        self.router = Router(config)
        self.pages = []
        self.pages_generated = 0
        self.assets_copied = 0

    def _run_tasks(self, func, items, errors):
        """
        Apply ``func`` to every item, threaded once the workload is large enough.

        BuildErrors are appended to ``errors``; results come back in input order
        with None in the slot of a failed item.
        """
        results = [None] * len(items)
        workers = self.config.workers or os.cpu_count() or 1

        if len(items) >= PARALLEL_THRESHOLD and workers > 1:
            self.logger.debug(f"Using {workers} worker threads for {len(items)} items")
            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = {executor.submit(func, item): index for index, item in enumerate(items)}
                for future in as_completed(futures):
                    try:
                        results[futures[future]] = future.result()
                    except BuildError as e:
                        errors.append(e)
        else:
            for index, item in enumerate(items):
                try:
                    results[index] = func(item)
                except BuildError as e:
                    errors.append(e)
        return results

    def load_pages(self, errors):
        """Read and parse every content file of every locale."""
        sources = []
        for locale in self.config.locales:
            for root, source_path, raw_text in self.loader.iter_locale(locale):
                sources.append((root, source_path, raw_text))
        self.logger.debug(f"Found {len(sources)} content files")

        def parse(source):
            root, source_path, raw_text = source
            return self.builder.build(source_path, raw_text, root.locale, root.collection)

        return [page for page in self._run_tasks(parse, sources, errors) if page is not None]

    def render_pages(self, pages, collections, renderer, translations, data, errors):
        """Resolve every layout chain, then render the pages whose chain resolved."""
        chains = {}
        for page in pages:
            try:
                chains[page.source_path] = renderer.resolve_chain(page)
            except BuildError as e:
                errors.append(e)

        def render(page):
            context = build_render_context(
                page, self.config, self.router, translations, data,
                siblings=collections.get((page.locale, page.collection), ()),
            )
            return page, renderer.render(page, chains[page.source_path], context)

        renderable = [page for page in pages if page.source_path in chains]
        return [result for result in self._run_tasks(render, renderable, errors) if result is not None]

    def build(self):
        """
        Run the whole pipeline.

        Raises:
            FileSystemError: a content root or the templates directory is missing.
            ConfigurationError: a data or translation file cannot be parsed.
            BuildFailed: one or more pages failed; nothing was written.
        """
        start_time = time.time()
        self.logger.info("Starting site build...")

        self.loader.check_roots()
        data = load_data_files(self.config.data_dir)
        translations = translation_tables(data)
        renderer = TemplateRenderer(self.config, converter=self.converter)

        errors = []
        pages = self.load_pages(errors)
        collections = group_collections(pages)
        errors.extend(self.router.route_all(pages))
        rendered = self.render_pages(pages, collections, renderer, translations, data, errors)
        self.pages = pages

        if errors:
            errors.sort(key=lambda e: str(e))
            for error in errors:
                self.logger.error(str(error))
            raise BuildFailed(errors)

        self.write_output(rendered)
        self.pages_generated = len(rendered)
        self.logger.info(f"Site build completed in {time.time() - start_time:.6f} seconds.")
        return rendered

    def write_output(self, rendered):
        """Write everything into a staging directory, then swap it into place."""
        output_dir = os.path.abspath(self.config.output_dir)
        parent_dir = os.path.dirname(output_dir)
        os.makedirs(parent_dir, exist_ok=True)
        staging_dir = tempfile.mkdtemp(prefix='.babelsite-staging-', dir=parent_dir)
        try:
            os.chmod(staging_dir, 0o755)
            self.write_pages(staging_dir, rendered)
            self.copy_static_assets(staging_dir)
            if self.config.minify:
                self.minify_assets(staging_dir)
            self.write_auxiliary_files(staging_dir)
            self.replace_output_dir(staging_dir, output_dir)
        except BaseException:
            shutil.rmtree(staging_dir, ignore_errors=True)
            raise

    def write_pages(self, target_dir, rendered):
        def write(item):
            page, html = item
            output_file_path = os.path.join(target_dir, *page.route.output_path.strip('/').split('/'))
            try:
                os.makedirs(os.path.dirname(output_file_path), exist_ok=True)
                with open(output_file_path, 'w', encoding='utf-8') as output_file:
                    output_file.write(html)
            except (IOError, OSError) as e:
                raise FileSystemError(output_file_path, f"Failed to write {output_file_path}: {e}")
            self.logger.debug(f"Generated HTML: {page.route.output_path}")

        errors = []
        self._run_tasks(write, list(rendered), errors)
        if errors:
            raise errors[0]

    def copy_static_assets(self, target_dir):
        """Copy every configured asset root and extra file verbatim."""
        self.assets_copied = 0
        for assets_dir in self.config.asset_dirs:
            if not os.path.isdir(assets_dir):
                self.logger.warning(f"Assets directory not found, skipping: {assets_dir}")
                continue
            relative = os.path.relpath(assets_dir, self.config.source_dir)
            if relative == '.' or relative.startswith('..'):
                relative = os.path.basename(assets_dir)
            destination = os.path.join(target_dir, relative)
            try:
                shutil.copytree(assets_dir, destination, dirs_exist_ok=True)
            except (IOError, OSError, shutil.Error) as e:
                raise FileSystemError(assets_dir, f"Failed to copy assets from {assets_dir}: {e}")
            copied = sum(len(files) for _, _, files in os.walk(assets_dir))
            self.assets_copied += copied
            self.logger.info(f"Copied assets from {assets_dir} ({copied} files)")

        for extra_file in self.config.extra_files:
            if not os.path.isfile(extra_file):
                self.logger.warning(f"Extra file not found, skipping: {extra_file}")
                continue
            try:
                shutil.copy2(extra_file, os.path.join(target_dir, os.path.basename(extra_file)))
            except (IOError, OSError) as e:
                raise FileSystemError(extra_file, f"Failed to copy {extra_file}: {e}")
            self.assets_copied += 1

    def minify_assets(self, target_dir):
        """Write .min.css/.min.js siblings next to copied stylesheets and scripts."""
        minifiers = {'.css': csscompressor.compress, '.js': rjsmin.jsmin}
        for dirpath, _, filenames in os.walk(target_dir):
            for filename in filenames:
                stem, ext = os.path.splitext(filename)
                if ext not in minifiers or stem.endswith('.min'):
                    continue
                source_path = os.path.join(dirpath, filename)
                minified_path = os.path.join(dirpath, f"{stem}.min{ext}")
                if os.path.exists(minified_path):
                    continue
                try:
                    with open(source_path, 'r', encoding='utf-8') as f:
                        minified = minifiers[ext](f.read())
                    with open(minified_path, 'w', encoding='utf-8') as f:
                        f.write(minified)
                except (IOError, OSError, UnicodeDecodeError) as e:
                    raise FileSystemError(source_path, f"Failed to minify {source_path}: {e}")
                self.logger.debug(f"Minified: {source_path}")

    def write_auxiliary_files(self, target_dir):
        """Write the feed, the optional sitemap and the hosting marker file."""
        self._write_text(os.path.join(target_dir, FEED_FILE), generate_rss_feed(self.pages, self.config))
        self.logger.info("Generating RSS feed")

        if self.config.sitemap:
            self._write_text(os.path.join(target_dir, SITEMAP_FILE), generate_xml_sitemap(self.pages, self.config))
            self.logger.info("Generating XML sitemap")

        # Zero bytes: its presence alone tells the host to skip post-processing.
        self._write_text(os.path.join(target_dir, self.config.marker_file), '')

    @staticmethod
    def _write_text(path, text):
        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(text)
        except (IOError, OSError) as e:
            raise FileSystemError(path, f"Failed to write {path}: {e}")

    def replace_output_dir(self, staging_dir, output_dir):
        """Swap the staging directory in for the output directory."""
        if not os.path.exists(output_dir):
            os.replace(staging_dir, output_dir)
        else:
            backup_root = tempfile.mkdtemp(prefix='.babelsite-previous-', dir=os.path.dirname(output_dir))
            backup_dir = os.path.join(backup_root, 'previous')
            os.replace(output_dir, backup_dir)
            try:
                os.replace(staging_dir, output_dir)
            except OSError:
                os.replace(backup_dir, output_dir)
                shutil.rmtree(backup_root, ignore_errors=True)
                raise
            shutil.rmtree(backup_root, ignore_errors=True)
        self.logger.info(f"Replaced output directory {output_dir}")
