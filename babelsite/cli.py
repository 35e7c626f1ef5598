#!/usr/bin/env python3
"""
Command-line interface for babelsite - multilingual static site generator.
"""

import os
import sys
import argparse
import time
from typing import List, Optional

from . import __version__
from .core import Site, setup_logging
from .errors import BuildError, BuildFailed
from .settings import SiteConfig, SiteSettings


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='babelsite - Multilingual Static Site Generator')
    parser.add_argument('--source', type=str, default='.',
                        help='Source directory holding the configuration file and content')
    parser.add_argument('--output', type=str,
                        help='Output directory for the generated site')
    parser.add_argument('--config', type=str,
                        help='Configuration file (default: babelsite.yml in the source directory)')
    parser.add_argument('--log-dir', type=str,
                        help='Directory to write a detailed build log to')
    parser.add_argument('--verbose', action='store_true',
                        help='Show every log message on the console')
    parser.add_argument('--init', type=str, choices=['yml', 'yaml', 'json'],
                        help='Create a sample configuration file and exit')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser.parse_args(argv)


def report_errors(error: BuildError) -> None:
    """Print every collected error to stderr."""
    errors = error.errors if isinstance(error, BuildFailed) else [error]
    for item in errors:
        print(f"Error: {item}", file=sys.stderr)
    if isinstance(error, BuildFailed):
        print(f"{len(errors)} error(s); nothing was written.", file=sys.stderr)


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = parse_args(argv)
    source_dir = os.path.abspath(os.path.expanduser(args.source))

    # Handle init command
    if args.init:
        try:
            config_path = SiteSettings(source_dir).create_sample_config(args.init)
        except BuildError as e:
            report_errors(e)
            return 1
        print(f"Created sample configuration file: {config_path}")
        return 0

    logger = setup_logging(args.log_dir, args.verbose)
    overall_start_time = time.time()

    try:
        # Load settings from configuration file
        settings_loader = SiteSettings(source_dir)
        settings_loader.load_settings(args.config)
        if settings_loader.config_file_path:
            logger.info(f"Loaded configuration from: {os.path.relpath(settings_loader.config_file_path)}")

        # Command line arguments take precedence
        output_dir = os.path.abspath(os.path.expanduser(args.output)) if args.output else None
        final_settings = settings_loader.merge_with_args({'output': output_dir})
        config = SiteConfig.from_settings(final_settings, source_dir)

        generator = Site(config, logger=logger)
        generator.build()
    except BuildError as e:
        report_errors(e)
        return 1

    # Show build statistics
    total_time = time.time() - overall_start_time
    logger.info(f"Site build completed in {total_time:.6f} seconds.")
    logger.info(f"Total pages generated: {generator.pages_generated}")
    logger.info(f"Total assets copied: {generator.assets_copied}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
