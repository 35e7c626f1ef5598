"""Test configuration and fixtures for babelsite tests."""

import pytest
import tempfile
import shutil
import os
from pathlib import Path

import yaml

from babelsite.settings import SiteConfig, SiteSettings

LOGO_BYTES = b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde'

BASE_LAYOUT = """<!DOCTYPE html>
<html lang="{{ lang }}">
<head>
    <title>{{ title }} | {{ site.title }}</title>
</head>
<body>
    <nav><a href="{{ '/lessons/' | relative_url }}">{{ t.nav.lessons }}</a></nav>
    {% block content %}{% endblock %}
    <footer>{{ t.footer.missing | default('fallback footer') }}</footer>
</body>
</html>
"""

DEFAULT_LAYOUT = """{% extends "base.html" %}
{% block content %}
<main>{{ content }}</main>
{% endblock %}
"""

LESSON_LAYOUT = """{% extends "base.html" %}
{% block content %}
<article>{{ content }}</article>
{% if prev %}<a class="prev" href="{{ prev.url }}">{{ prev.title }}</a>{% endif %}
{% if next %}<a class="next" href="{{ next.url }}">{{ next.title }}</a>{% endif %}
<ul class="languages">{% for code, url in language_urls.items() %}<li><a hreflang="{{ code }}" href="{{ url }}">{{ code }}</a></li>{% endfor %}</ul>
{% endblock %}
"""


def write(path, text):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding='utf-8')
    return str(path)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_templates_dir(temp_dir):
    """Create a templates directory with a base, default and lesson layout."""
    templates_dir = Path(temp_dir) / '_layouts'
    write(templates_dir / 'base.html', BASE_LAYOUT)
    write(templates_dir / 'default.html', DEFAULT_LAYOUT)
    write(templates_dir / 'lesson.html', LESSON_LAYOUT)
    return str(templates_dir)


@pytest.fixture
def site_source(temp_dir, mock_templates_dir):
    """Create a small two-locale site: lessons in en and pt, pages in en."""
    root = Path(temp_dir)

    write(root / '_lessons' / 'intro.md', """---
title: Introduction
order: 1
date: 2024-01-01
description: Start here.
---

Hello **world**.
""")
    write(root / '_lessons' / 'variables.md', """---
title: Variables
order: 2
date: 2024-02-01
---

Variables hold values.
""")
    write(root / '_lessons_pt' / 'intro.md', """---
title: Introdução
order: 1
---

Olá **mundo**.
""")
    write(root / 'pages' / 'index.md', """---
title: Home
---

Welcome home.
""")
    write(root / 'pages' / 'about.md', "About this site.\n")

    write(root / '_data' / 'translations.yml', yaml.safe_dump({
        'en': {'nav': {'lessons': 'Lessons'}},
        'pt': {'nav': {'lessons': 'Lições'}},
    }, allow_unicode=True))

    write(root / 'assets' / 'css' / 'site.css', "body {\n    color: black;\n}\n")
    logo = root / 'assets' / 'img' / 'logo.png'
    logo.parent.mkdir(parents=True, exist_ok=True)
    logo.write_bytes(LOGO_BYTES)

    return str(root)


@pytest.fixture
def site_settings():
    """Settings for the site_source tree, on top of the defaults."""
    settings = SiteSettings.DEFAULT_SETTINGS.copy()
    settings.update({
        'site_url': 'https://example.com',
        'site_title': 'Example',
        'locales': ['en', 'pt'],
        'default_locale': 'en',
        'content_roots': {
            'en': {'lesson': '_lessons', 'page': 'pages'},
            'pt': {'lesson': '_lessons_pt'},
        },
        'collection_prefixes': {'lesson': 'lessons', 'page': ''},
        'defaults': [{'scope': {'collection': 'lesson'}, 'values': {'layout': 'lesson'}}],
        'feed_collection': 'lesson',
        'sitemap': True,
    })
    return settings


@pytest.fixture
def make_config(site_source, site_settings):
    """Build a SiteConfig for site_source, with optional overrides."""
    def factory(**overrides):
        settings = dict(site_settings)
        settings.update(overrides)
        return SiteConfig.from_settings(settings, site_source)
    return factory


@pytest.fixture
def site_config(make_config):
    return make_config()
