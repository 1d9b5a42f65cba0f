#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import logging
import re
from urllib.parse import quote, unquote, urljoin, urlparse

manifest_logger = logging.getLogger("manifest")

# Route that all rewritten references point back to
PROXY_ROUTE = "/proxy/"

ABSOLUTE_URL_RE = re.compile(r"^https?://.+", re.IGNORECASE)


def get_origin(url):
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"URL has no origin: {url!r}")
    return f"{parsed.scheme}://{parsed.netloc}"


def derive_base_url(url):
    """
    Return the directory containing the resource at ``url``, always ending in '/'.

        https://h/a/b/c.m3u8  ->  https://h/a/b/
        https://h/c.m3u8      ->  https://h/

    Never raises. URLs that cannot be parsed are truncated after their last '/'.
    """
    if not url:
        return ""
    try:
        origin = get_origin(url)
        path_segments = [segment for segment in urlparse(url).path.split("/") if segment]
    except ValueError as e:
        manifest_logger.debug("Failed to derive base URL from '%s': %s", url, e)
        last_slash = url.rfind("/")
        if last_slash > url.find("://") + 2:
            return url[:last_slash + 1]
        return url + "/"
    if len(path_segments) <= 1:
        return f"{origin}/"
    return f"{origin}/{'/'.join(path_segments[:-1])}/"


def resolve_url(base_url, relative_url):
    if not relative_url:
        return ""
    if ABSOLUTE_URL_RE.match(relative_url):
        # Already absolute, base is irrelevant
        return relative_url
    if not base_url:
        return relative_url
    try:
        return urljoin(base_url, relative_url)
    except ValueError as e:
        manifest_logger.debug("URL resolution failed: base='%s', relative='%s': %s", base_url, relative_url, e)
    if relative_url.startswith("/"):
        try:
            return f"{get_origin(base_url)}{relative_url}"
        except ValueError:
            return relative_url
    return f"{base_url[:base_url.rfind('/') + 1]}{relative_url}"


def rewrite_url_to_proxy(target_url):
    if not target_url or not isinstance(target_url, str):
        return ""
    return f"{PROXY_ROUTE}{quote(target_url, safe='')}"


def get_target_url_from_path(encoded_path):
    """
    Extract the target URL from the encoded part of a proxy request path.
    Returns None when the path does not carry an http(s) URL.
    """
    if not encoded_path:
        manifest_logger.debug("Received an empty target path")
        return None
    try:
        decoded_url = unquote(encoded_path, errors="strict")
    except UnicodeDecodeError as e:
        manifest_logger.debug("Failed to decode target URL '%s': %s", encoded_path, e)
        return None
    if ABSOLUTE_URL_RE.match(decoded_url):
        return decoded_url
    manifest_logger.debug("Invalid decoded URL format: %s", decoded_url)
    return None
