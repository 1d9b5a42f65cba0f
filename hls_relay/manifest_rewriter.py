#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import enum
import logging
import re
from collections import namedtuple

from hls_relay.config import DEFAULT_MAX_RECURSION
from hls_relay.exceptions import RecursionLimitError
from hls_relay.urls import derive_base_url, resolve_url, rewrite_url_to_proxy

manifest_logger = logging.getLogger("manifest")

"""
HLS Manifest Rewrite Engine

Every reference inside a fetched playlist is rewritten to point back at the relay's
/proxy/<percent-encoded absolute URL> route, so players never contact the origin directly.

Playlist handling:

1. Not a playlist (segments, keys, anything else):
   Returned unchanged.

2. Media playlist:
   #EXT-X-KEY and #EXT-X-MAP URI attributes and every segment line are resolved
   against the playlist's directory and proxy wrapped. All other lines pass through.

3. Master playlist:
   The #EXT-X-STREAM-INF variant with the highest BANDWIDTH is fetched and handled
   in place of the master, recursing while the fetched content is itself a master.
   The client only ever receives a single rewritten media playlist.
"""

M3U8_CONTENT_TYPES = (
    "application/vnd.apple.mpegurl",
    "application/x-mpegurl",
    "audio/mpegurl",
    "audio/x-mpegurl",
)

URI_ATTRIBUTE_RE = re.compile(r'URI="([^"]+)"')
BANDWIDTH_RE = re.compile(r'(?:^|[:,])\s*BANDWIDTH=(\d+)')
PLAYLIST_URI_RE = re.compile(r'\.m3u8($|\?.*)', re.IGNORECASE)

Variant = namedtuple("Variant", ["bandwidth", "uri"])


class ManifestKind(enum.Enum):
    NOT_MANIFEST = "not_manifest"
    MEDIA = "media"
    MASTER = "master"


def is_m3u8_content(content, content_type=None):
    # Origins frequently mislabel playlists, so either check is enough
    if content_type and any(m3u8_type in content_type.lower() for m3u8_type in M3U8_CONTENT_TYPES):
        return True
    return isinstance(content, str) and content.lstrip("\ufeff").strip().startswith("#EXTM3U")


def is_master_playlist(content):
    return "#EXT-X-STREAM-INF" in content or "#EXT-X-MEDIA:" in content


def classify_manifest(content, content_type=None):
    if not is_m3u8_content(content, content_type):
        return ManifestKind.NOT_MANIFEST
    if is_master_playlist(content):
        return ManifestKind.MASTER
    return ManifestKind.MEDIA


def process_uri_line(line, base_url):
    """
    Proxy the first URI="..." attribute of an #EXT-X-KEY or #EXT-X-MAP line.
    """
    def replace_uri(match):
        absolute_uri = resolve_url(base_url, match.group(1))
        manifest_logger.debug("Rewriting URI attribute: original='%s', absolute='%s'", match.group(1), absolute_uri)
        return f'URI="{rewrite_url_to_proxy(absolute_uri)}"'

    return URI_ATTRIBUTE_RE.sub(replace_uri, line, count=1)


def process_media_playlist(url, content):
    base_url = derive_base_url(url)
    if not base_url:
        manifest_logger.debug("Unable to determine base URL for media playlist '%s'", url)

    lines = content.split("\n")
    last_index = len(lines) - 1
    output = []
    for index, raw_line in enumerate(lines):
        line = raw_line.strip()

        if not line:
            # Keep the terminating newline
            if index == last_index:
                output.append(line)
            continue

        if line.startswith("#EXT-X-KEY") or line.startswith("#EXT-X-MAP"):
            output.append(process_uri_line(line, base_url))
            continue

        if line.startswith("#"):
            output.append(line)
            continue

        absolute_url = resolve_url(base_url, line)
        manifest_logger.debug("Rewriting segment: original='%s', absolute='%s'", line, absolute_url)
        output.append(rewrite_url_to_proxy(absolute_url))

    return "\n".join(output)


def select_best_variant(lines):
    """
    Return the #EXT-X-STREAM-INF variant with the highest BANDWIDTH, or None.

    A variant without a BANDWIDTH attribute counts as 0. On equal bandwidth the variant
    listed later wins.
    """
    best_variant = None
    index = 0
    while index < len(lines):
        line = lines[index].strip()
        if line.startswith("#EXT-X-STREAM-INF"):
            bandwidth_match = BANDWIDTH_RE.search(line)
            bandwidth = int(bandwidth_match.group(1)) if bandwidth_match else 0

            # The variant URI is the next line that is not a tag or comment
            for next_index in range(index + 1, len(lines)):
                variant_uri = lines[next_index].strip()
                if variant_uri and not variant_uri.startswith("#"):
                    index = next_index
                    if best_variant is None or bandwidth >= best_variant.bandwidth:
                        best_variant = Variant(bandwidth, variant_uri)
                    break
        index += 1
    return best_variant


def find_fallback_playlist(lines):
    for raw_line in lines:
        line = raw_line.strip()
        if line and not line.startswith("#") and PLAYLIST_URI_RE.search(line):
            return line
    return None


class ManifestResolver:
    """
    Rewrites one fetched playlist, following master playlists down to a media playlist.

    ``fetch`` is a coroutine function ``fetch(url, request_headers)`` returning a
    FetchResult. It is called once per level of master playlist nesting.
    """

    def __init__(self, fetch, max_recursion=DEFAULT_MAX_RECURSION):
        self.fetch = fetch
        self.max_recursion = max_recursion

    async def dispatch(self, url, content, content_type=None, depth=0):
        if classify_manifest(content, content_type) is ManifestKind.NOT_MANIFEST:
            manifest_logger.debug("Content from '%s' is not a playlist (type: %s), returning as-is", url, content_type)
            return content
        return await self.process_m3u8_content(url, content, depth)

    async def process_m3u8_content(self, url, content, depth=0):
        if is_master_playlist(content):
            manifest_logger.debug("Detected master playlist: %s (depth: %s)", url, depth)
            return await self.process_master_playlist(url, content, depth)
        manifest_logger.debug("Detected media playlist: %s (depth: %s)", url, depth)
        return process_media_playlist(url, content)

    async def process_master_playlist(self, url, content, depth):
        if depth > self.max_recursion:
            raise RecursionLimitError(url, self.max_recursion)

        base_url = derive_base_url(url)
        lines = content.split("\n")

        variant_url = ""
        best_variant = select_best_variant(lines)
        if best_variant:
            variant_url = resolve_url(base_url, best_variant.uri)
            manifest_logger.debug("Selected variant (bandwidth: %s): %s", best_variant.bandwidth, variant_url)
        else:
            manifest_logger.debug("No variant with a URI found, trying first playlist URI: %s", url)
            fallback_uri = find_fallback_playlist(lines)
            if fallback_uri:
                variant_url = resolve_url(base_url, fallback_uri)
                manifest_logger.debug("Fallback: found first child playlist URI: %s", variant_url)

        if not variant_url:
            manifest_logger.debug("No child playlist found in master playlist '%s', treating as media playlist", url)
            return process_media_playlist(url, content)

        result = await self.fetch(variant_url, {})
        # Relative references resolve against the final URL after redirects
        variant_url = result.url or variant_url
        variant_content = result.content

        if not is_m3u8_content(variant_content, result.content_type):
            manifest_logger.debug("Child playlist '%s' is not M3U8 (type: %s), treating as media playlist",
                                  variant_url, result.content_type)
            return process_media_playlist(variant_url, variant_content)

        return await self.process_m3u8_content(variant_url, variant_content, depth + 1)
