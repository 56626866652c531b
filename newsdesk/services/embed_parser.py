"""Recognition of video and social media embed sources.

Resolves a pasted YouTube URL into an embed target and a pasted social media
URL or embed snippet into a platform-tagged embed. Anything that does not match
a supported pattern raises ContentValidationError.
"""

import html
import re
from dataclasses import dataclass
from typing import Optional

from .editor_errors import ContentValidationError

YOUTUBE_EMBED_BASE = "https://www.youtube.com/embed"

_YOUTUBE_HOST = re.compile(
    r"^(?:https?://)?(?:(?:www|m|music)\.)?(?:youtube\.com|youtu\.be)/", re.IGNORECASE
)
_PLAYLIST_PARAM = re.compile(r"[?&]list=([^&\s#]+)")
_VIDEO_PARAM = re.compile(r"[?&]v=([^&\s#]+)")
_VIDEO_PATTERNS = (
    re.compile(r"(?:youtube\.com/watch\?(?:[^#\s]*&)?v=|youtu\.be/)([^&\s?#/]+)", re.IGNORECASE),
    re.compile(r"youtube\.com/embed/([^&\s?#/]+)", re.IGNORECASE),
)

_TWITTER_URL = re.compile(r"^(?:https?://)?(?:[\w-]+\.)?(?:twitter|x)\.com/", re.IGNORECASE)
_TWEET_ID = re.compile(r"/status(?:es)?/(\d+)")
_INSTAGRAM_URL = re.compile(r"^(?:https?://)?(?:www\.)?instagram\.com/", re.IGNORECASE)
_INSTAGRAM_POST = re.compile(r"instagram\.com/(p|reel|reels)/([A-Za-z0-9_-]+)", re.IGNORECASE)
_TIKTOK_URL = re.compile(r"^(?:https?://)?(?:[\w-]+\.)?tiktok\.com/", re.IGNORECASE)
_TIKTOK_VIDEO = (
    re.compile(r"tiktok\.com/@[^/\s]+/video/(\d+)", re.IGNORECASE),
    re.compile(r"tiktok\.com/t/([A-Za-z0-9]+)", re.IGNORECASE),
)

INVALID_YOUTUBE_MESSAGE = (
    "Invalid YouTube URL. Please enter a valid YouTube video or playlist URL."
)
UNSUPPORTED_SOCIAL_MESSAGE = (
    "Unsupported format. Please paste embed code from Twitter/X, Instagram, "
    "or TikTok, or enter a valid URL."
)


@dataclass(frozen=True)
class VideoEmbedTarget:
    """A resolved YouTube embed."""

    src: str
    kind: str  # "video" or "playlist"
    video_id: Optional[str] = None
    playlist_id: Optional[str] = None


@dataclass(frozen=True)
class SocialEmbedTarget:
    """A resolved social media embed."""

    platform: str
    html: str
    url: Optional[str] = None
    post_id: Optional[str] = None


def resolve_video_embed(source_url: str) -> VideoEmbedTarget:
    """
    Resolve a YouTube URL into an embed target.

    Accepts watch URLs, youtu.be short URLs, embed URLs and any YouTube URL
    with a list= parameter. Playlist URLs embed the playlist, starting at
    the given video when one is present.

    Args:
        source_url: URL entered by the user

    Returns:
        VideoEmbedTarget with the iframe src

    Raises:
        ContentValidationError: If the URL is not a recognised YouTube URL
    """
    url = (source_url or "").strip()
    if not url or not _YOUTUBE_HOST.match(url):
        raise ContentValidationError(INVALID_YOUTUBE_MESSAGE)

    playlist_match = _PLAYLIST_PARAM.search(url)
    if playlist_match:
        playlist_id = playlist_match.group(1)
        video_match = _VIDEO_PARAM.search(url)
        if video_match:
            video_id = video_match.group(1)
            return VideoEmbedTarget(
                src=f"{YOUTUBE_EMBED_BASE}/{video_id}?list={playlist_id}",
                kind="playlist",
                video_id=video_id,
                playlist_id=playlist_id,
            )
        return VideoEmbedTarget(
            src=f"{YOUTUBE_EMBED_BASE}/videoseries?list={playlist_id}",
            kind="playlist",
            playlist_id=playlist_id,
        )

    for pattern in _VIDEO_PATTERNS:
        match = pattern.search(url)
        if match:
            video_id = match.group(1)
            return VideoEmbedTarget(
                src=f"{YOUTUBE_EMBED_BASE}/{video_id}",
                kind="video",
                video_id=video_id,
            )

    raise ContentValidationError(INVALID_YOUTUBE_MESSAGE)


def is_embed_code(value: str) -> bool:
    """Raw embed markup is detected by the presence of angle-bracket tags."""
    return "<" in value and ">" in value


def detect_platform(code: str) -> str:
    """Detect the social platform of a raw embed snippet."""
    lowered = code.lower()
    if "twitter-tweet" in lowered or "twitter.com" in lowered or "x.com/" in lowered:
        return "twitter"
    if "instagram.com" in lowered or "instagram-media" in lowered:
        return "instagram"
    if "tiktok.com" in lowered or "tiktok-embed" in lowered:
        return "tiktok"
    return "generic"


def resolve_social_embed(raw_code_or_url: str) -> SocialEmbedTarget:
    """
    Resolve a social media embed from raw markup or a post URL.

    Raw markup is passed through unmodified and tagged with the detected
    platform. URLs must point at a Twitter/X status, an Instagram post or reel,
    or a TikTok video.

    Raises:
        ContentValidationError: For empty input, unsupported platforms and URLs
            without a recognisable post id
    """
    code = (raw_code_or_url or "").strip()
    if not code:
        raise ContentValidationError("Please paste embed code or a post URL.")

    if is_embed_code(code):
        return SocialEmbedTarget(platform=detect_platform(code), html=code)

    if _TWITTER_URL.match(code):
        return _twitter_embed(code)
    if _INSTAGRAM_URL.match(code):
        return _instagram_embed(code)
    if _TIKTOK_URL.match(code):
        return _tiktok_embed(code)

    raise ContentValidationError(UNSUPPORTED_SOCIAL_MESSAGE)


def _twitter_embed(url: str) -> SocialEmbedTarget:
    match = _TWEET_ID.search(url)
    if not match:
        raise ContentValidationError(
            "Invalid Twitter/X URL. Please enter a valid tweet URL or paste embed code."
        )
    tweet_id = match.group(1)
    href = html.escape(url, quote=True)
    markup = (
        f'<blockquote class="twitter-tweet" data-dnt="true" data-tweet-id="{tweet_id}">'
        f'<a href="{href}">Loading tweet...</a></blockquote>'
        '<script async src="https://platform.twitter.com/widgets.js" charset="utf-8"></script>'
    )
    return SocialEmbedTarget(platform="twitter", html=markup, url=url, post_id=tweet_id)


def _instagram_embed(url: str) -> SocialEmbedTarget:
    match = _INSTAGRAM_POST.search(url)
    if not match:
        raise ContentValidationError(
            "Invalid Instagram URL. Please enter a valid Instagram post or reel URL, "
            "or paste embed code."
        )
    kind, code = match.group(1).lower(), match.group(2)
    embed_url = f"https://www.instagram.com/{kind}/{code}/embed"
    markup = (
        f'<iframe src="{embed_url}" width="100%" height="600" frameborder="0" '
        'scrolling="no" allowtransparency="true" style="border-radius: 12px;"></iframe>'
    )
    return SocialEmbedTarget(platform="instagram", html=markup, url=url, post_id=code)


def _tiktok_embed(url: str) -> SocialEmbedTarget:
    video_id = None
    for pattern in _TIKTOK_VIDEO:
        match = pattern.search(url)
        if match:
            video_id = match.group(1)
            break
    if not video_id:
        raise ContentValidationError(
            "Invalid TikTok URL. Please enter a valid TikTok video URL, or paste embed code."
        )
    href = html.escape(url, quote=True)
    markup = (
        f'<blockquote class="tiktok-embed" cite="{href}" data-video-id="{video_id}" '
        'style="max-width: 325px; min-width: 325px;">'
        f'<section><a target="_blank" href="{href}">Loading TikTok...</a></section>'
        "</blockquote>"
        '<script async src="https://www.tiktok.com/embed.js"></script>'
    )
    return SocialEmbedTarget(platform="tiktok", html=markup, url=url, post_id=video_id)
