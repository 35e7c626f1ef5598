"""
Auxiliary XML artifacts: RSS feed and sitemap.

Both are built as strings; the site assembler decides where they are written.
"""

import re
import html
import calendar
from datetime import datetime
from email.utils import formatdate
from xml.sax.saxutils import escape

FEED_FILE = 'feed.xml'
SITEMAP_FILE = 'sitemap.xml'


def absolute(config, url):
    return f"{config.site_url}{config.baseurl}{url}"


def generate_excerpt(content, words=30):
    """Generate a plain-text excerpt from HTML content."""
    plain_text = html.unescape(re.sub(r'<[^>]+>', '', content))
    plain_text = re.sub(r'\s+', ' ', plain_text).strip()
    parts = plain_text.split(' ')
    if len(parts) > words:
        return ' '.join(parts[:words]) + '...'
    return plain_text


def feed_pages(pages, config):
    """Most recent pages of the feed collection in the default locale, newest first."""
    if not config.feed_collection:
        return []
    candidates = [
        p for p in pages
        if p.collection == config.feed_collection and p.locale == config.default_locale
    ]
    # Collection order breaks ties, so undated pages keep their authored order.
    candidates.sort(key=lambda p: p.sort_key())
    candidates.sort(key=lambda p: p.date, reverse=True)
    return candidates[:config.feed_limit]


def generate_rss_feed(pages, config, build_time=None):
    """Render an RSS 2.0 feed for the configured collection."""
    site_name = config.site_title or re.sub(r'^https?://(www\.)?', '', config.site_url) or 'Site'
    site_link = absolute(config, '/')
    build_date = formatdate(build_time.timestamp() if build_time else None)

    rss_content = f'''<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom">
<channel>
<title>{escape(site_name)}</title>
<link>{escape(site_link)}</link>
<description>{escape(config.site_description or f"Latest content from {site_name}")}</description>
<language>{escape(config.default_locale)}</language>
<atom:link href="{escape(absolute(config, '/' + FEED_FILE))}" rel="self" type="application/rss+xml"/>
<lastBuildDate>{build_date}</lastBuildDate>
'''

    for page in feed_pages(pages, config):
        link = escape(absolute(config, page.route.public_url))
        raw_description = page.metadata.get_string('description') or generate_excerpt(page.body_html)
        rss_content += f'''
<item>
<title>{escape(page.title)}</title>
<link>{link}</link>
<description>{escape(raw_description)}</description>'''
        if page.date != datetime.min:
            rss_content += f'''
<pubDate>{formatdate(calendar.timegm(page.date.timetuple()), usegmt=True)}</pubDate>'''
        rss_content += f'''
<guid>{link}</guid>
</item>'''

    rss_content += '''
</channel>
</rss>
'''
    return rss_content


def format_xml_sitemap_entry(url, lastmod=None):
    entry = f"  <url>\n    <loc>{escape(url)}</loc>\n"
    if lastmod is not None and lastmod != datetime.min:
        entry += f"    <lastmod>{lastmod.strftime('%Y-%m-%d')}</lastmod>\n"
    return entry + "  </url>\n"


def generate_xml_sitemap(pages, config):
    """Render an XML sitemap covering every routed page."""
    sitemap_content = '''<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
'''
    for page in sorted(pages, key=lambda p: p.route.public_url):
        sitemap_content += format_xml_sitemap_entry(absolute(config, page.route.public_url), page.date)
    sitemap_content += '</urlset>\n'
    return sitemap_content
