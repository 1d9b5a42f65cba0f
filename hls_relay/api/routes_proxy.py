#!/usr/bin/env python3
# -*- coding:utf-8 -*-
import logging
from functools import partial

from quart import current_app, Response, request

from hls_relay.api import blueprint
from hls_relay.exceptions import InvalidTargetUrl, RelayError
from hls_relay.fetcher import fetch_content_with_type
from hls_relay.manifest_rewriter import ManifestKind, ManifestResolver, classify_manifest
from hls_relay.urls import PROXY_ROUTE, get_target_url_from_path

# Test:
#       > curl -i "http://localhost:9987/proxy/$(python3 -c 'import urllib.parse,sys;print(urllib.parse.quote(sys.argv[1], safe=""))' '<URL>')"
#
#   Or play it:
#       > ffplay "http://localhost:9987/proxy/https%3A%2F%2Fexample.com%2Fmaster.m3u8"
#

proxy_logger = logging.getLogger("proxy")

M3U8_CONTENT_TYPE = "application/vnd.apple.mpegurl"

# The body is re-encoded by Quart, aiohttp has already decompressed it
EXCLUDED_UPSTREAM_HEADERS = {
    "content-length",
    "transfer-encoding",
    "content-encoding",
    "connection",
    "content-type",
}

CORS_HEADERS = {
    "Access-Control-Allow-Origin":  "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}


@blueprint.after_request
async def _add_cors_headers(response):
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


def _requested_target_path(encoded_url):
    # Prefer the raw ASGI path so the target URL is only percent-decoded once
    raw_path = request.scope.get("raw_path")
    if raw_path:
        raw_path = raw_path.decode("latin-1")
        if PROXY_ROUTE in raw_path:
            return raw_path.split(PROXY_ROUTE, 1)[1]
    return encoded_url


def _get_target_url(encoded_url):
    target_url = get_target_url_from_path(_requested_target_path(encoded_url))
    if not target_url:
        raise InvalidTargetUrl(encoded_url)
    # An unencoded target loses its query string to the proxy request
    if request.query_string and "?" not in target_url:
        target_url = f"{target_url}?{request.query_string.decode('latin-1')}"
    return target_url


def _build_response(body, content_type, upstream_headers, cache_ttl):
    response = Response(body, status=200, content_type=content_type)
    for name, value in upstream_headers:
        if name.lower() not in EXCLUDED_UPSTREAM_HEADERS:
            response.headers.add(name, value)
    if cache_ttl and "Cache-Control" not in response.headers:
        response.headers["Cache-Control"] = f"public, max-age={cache_ttl}"
    return response


@blueprint.route(PROXY_ROUTE, methods=["GET", "OPTIONS"], defaults={"encoded_url": ""})
@blueprint.route(f"{PROXY_ROUTE}<path:encoded_url>", methods=["GET", "OPTIONS"])
async def proxy(encoded_url):
    if request.method == "OPTIONS":
        return Response("", status=204)

    relay_config = current_app.config["RELAY_CONFIG"]
    fetch = partial(
        fetch_content_with_type,
        user_agents=relay_config.user_agents,
        timeout=relay_config.request_timeout,
    )
    try:
        target_url = _get_target_url(encoded_url)
        result = await fetch(target_url, request.headers)
        # Get actual URL after any redirects
        response_url = result.url or target_url

        if classify_manifest(result.content, result.content_type) is ManifestKind.NOT_MANIFEST:
            proxy_logger.info("Serving URL '%s' unmodified (type: %s)", target_url, result.content_type)
            return _build_response(
                result.body,
                result.content_type or "application/octet-stream",
                result.headers,
                relay_config.cache_ttl,
            )

        proxy_logger.info("Processing M3U8 content: %s", target_url)
        resolver = ManifestResolver(fetch, max_recursion=relay_config.max_recursion)
        playlist = await resolver.dispatch(response_url, result.content, result.content_type)
        return _build_response(playlist, M3U8_CONTENT_TYPE, result.headers, relay_config.cache_ttl)
    except RelayError as e:
        proxy_logger.error("Proxy request failed: %s", e)
        return Response(f"Proxy request failed: {e}", status=e.status, content_type="text/plain; charset=utf-8")
