"""Content classification and URL rewriting for playlists and subtitles.

Every sub-resource reference found in an HLS playlist or a WebVTT file is
resolved against the URL the document was fetched from and replaced by
``/fetch?url=<percent-encoded absolute url>``, so the player keeps talking
to this proxy instead of the origin.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, urlsplit

import structlog
from m3u8 import protocol

from streamproxy.config import FETCH_PATH

log = structlog.get_logger(__name__)

TS_SYNC_BYTE = 0x47
TS_CONTENT_TYPE = "video/mp2t"

# matched in any case
MPEGURL_CONTENT_TYPE = "application/x-mpegurl"

PLAYLIST_CONTENT_TYPES = (
    "application/vnd.apple.mpegurl",
    "video/MP2T",
    "audio/mpegurl",
    "audio/x-mpegurl",
)

ABSOLUTE_URL_RE = re.compile(r"^(?:(?:(?:https?|ftp):)?//)[^\s/$.?#].[^\s]*\Z", re.IGNORECASE)
SUBTITLE_IMAGE_RE = re.compile(r"\S+\.jpg")
TAG_URI_RE = re.compile(r'URI="([^"]*)"')

URI_TAGS = (
    protocol.ext_x_key,
    protocol.ext_x_map,
    protocol.ext_x_media,
    protocol.ext_x_i_frame_stream_inf,
)

# encodeURIComponent leaves these unescaped
_COMPONENT_SAFE = "!~*'()"


class Strategy(enum.Enum):
    SUBTITLE = "subtitle"
    PLAYLIST = "playlist"
    PASS_THROUGH = "pass-through"
    MALFORMED_PLAYLIST = "malformed-playlist"


@dataclass(frozen=True)
class RewriteResult:
    body: bytes
    # None: send the response without a Content-Type header
    content_type: Optional[str]
    strategy: Strategy


def proxied(url: str) -> str:
    return f"{FETCH_PATH}?url={quote(url, safe=_COMPONENT_SAFE)}"


def is_absolute(ref: str) -> bool:
    return ABSOLUTE_URL_RE.match(ref) is not None


def base_directory(target_url: str) -> str:
    """Drop the last ``/`` of *target_url* and everything after it.

    >>> base_directory("https://host/path/index.m3u8?t=1")
    'https://host/path'
    """
    head, sep, _ = target_url.rpartition("/")
    return head if sep else target_url


def resolve(ref: str, target_url: str, *, from_root: bool = False) -> str:
    """Resolve a playlist/subtitle reference to an absolute upstream URL."""
    if is_absolute(ref):
        return ref
    if from_root and ref.startswith("/"):
        parts = urlsplit(target_url)
        return f"{parts.scheme}://{parts.netloc}{ref}"
    if not ref.startswith("/"):
        ref = "/" + ref
    return base_directory(target_url) + ref


def classify(content_type: str, target_url: str) -> Strategy:
    if "text/vtt" in content_type:
        return Strategy.SUBTITLE
    if MPEGURL_CONTENT_TYPE in content_type.lower():
        return Strategy.PLAYLIST
    if any(t in content_type for t in PLAYLIST_CONTENT_TYPES):
        return Strategy.PLAYLIST
    if "text/html" in content_type and target_url.endswith((".m3u8", ".ts")):
        return Strategy.PLAYLIST
    return Strategy.PASS_THROUGH


def decode_text(body: bytes) -> str:
    return body.decode("utf-8-sig", errors="replace")


def rewrite_subtitles(text: str, target_url: str) -> str:
    filenames = list(dict.fromkeys(m.group(0) for m in SUBTITLE_IMAGE_RE.finditer(text)))
    if not filenames:
        return text

    replacements = {name: proxied(resolve(name, target_url)) for name in filenames}
    # one pass over the original text, so inserted URLs are never matched again
    pattern = re.compile(
        "|".join(re.escape(name) for name in sorted(filenames, key=len, reverse=True))
    )
    log.debug("subtitle_images_rewritten", count=len(filenames), url=target_url)
    return pattern.sub(lambda m: replacements[m.group(0)], text)


def _rewrite_tag_uris(line: str, target_url: str) -> str:
    if not line.startswith(URI_TAGS):
        return line

    def repl(match: re.Match) -> str:
        uri = match.group(1)
        if not uri:
            return match.group(0)
        return f'URI="{proxied(resolve(uri, target_url, from_root=True))}"'

    return TAG_URI_RE.sub(repl, line)


def rewrite_playlist_line(line: str, target_url: str, rewrite_tags: bool = False) -> str:
    if not line.strip():
        return line

    eol = ""
    if line.endswith("\r"):
        line, eol = line[:-1], "\r"

    if line.startswith("#"):
        if rewrite_tags:
            line = _rewrite_tag_uris(line, target_url)
        return line + eol

    dotted = line.startswith(".")
    if dotted:
        line = line[1:]

    return proxied(resolve(line, target_url, from_root=not dotted)) + eol


def is_playlist(text: str) -> bool:
    return text.startswith(protocol.ext_m3u)


def rewrite_playlist(text: str, target_url: str, rewrite_tags: bool = False) -> str:
    """Rewrite every URI line of an HLS playlist, keeping line count and order."""
    lines = text.split("\n")
    return "\n".join(rewrite_playlist_line(line, target_url, rewrite_tags) for line in lines)


def sniff_content_type(body: bytes, declared: str) -> str:
    if body and body[0] == TS_SYNC_BYTE:
        return TS_CONTENT_TYPE
    return declared


def transform(
    body: bytes,
    content_type: str,
    target_url: str,
    rewrite_tags: bool = False,
) -> RewriteResult:
    """Pick a strategy for an upstream body and apply it."""
    strategy = classify(content_type, target_url)

    if strategy is Strategy.SUBTITLE:
        text = rewrite_subtitles(decode_text(body), target_url)
        return RewriteResult(text.encode("utf-8"), content_type, strategy)

    if strategy is Strategy.PLAYLIST:
        text = decode_text(body)
        if not is_playlist(text):
            log.info("playlist_marker_missing", url=target_url, content_type=content_type)
            return RewriteResult(body, None, Strategy.MALFORMED_PLAYLIST)
        text = rewrite_playlist(text, target_url, rewrite_tags)
        return RewriteResult(text.encode("utf-8"), content_type, strategy)

    return RewriteResult(body, sniff_content_type(body, content_type), strategy)
