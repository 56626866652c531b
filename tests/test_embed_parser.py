"""Unit tests for YouTube and social media embed recognition."""

import pytest

from newsdesk.services.editor_errors import ContentValidationError
from newsdesk.services.embed_parser import (
    INVALID_YOUTUBE_MESSAGE,
    UNSUPPORTED_SOCIAL_MESSAGE,
    detect_platform,
    is_embed_code,
    resolve_social_embed,
    resolve_video_embed,
)


class TestResolveVideoEmbed:
    """Tests for YouTube URL resolution."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
            "https://youtube.com/watch?feature=share&v=dQw4w9WgXcQ",
            "https://youtu.be/dQw4w9WgXcQ",
            "youtu.be/dQw4w9WgXcQ?t=42",
            "https://www.youtube.com/embed/dQw4w9WgXcQ",
            "https://m.youtube.com/watch?v=dQw4w9WgXcQ",
        ],
    )
    def test_video_urls(self, url):
        target = resolve_video_embed(url)
        assert target.kind == "video"
        assert target.video_id == "dQw4w9WgXcQ"
        assert target.src == "https://www.youtube.com/embed/dQw4w9WgXcQ"

    def test_playlist_url(self):
        target = resolve_video_embed("https://www.youtube.com/playlist?list=PLabc123")
        assert target.kind == "playlist"
        assert target.playlist_id == "PLabc123"
        assert target.src == "https://www.youtube.com/embed/videoseries?list=PLabc123"

    def test_video_inside_playlist(self):
        target = resolve_video_embed("https://www.youtube.com/watch?v=abc&list=PLxyz")
        assert target.kind == "playlist"
        assert target.src == "https://www.youtube.com/embed/abc?list=PLxyz"

    def test_surrounding_whitespace_is_ignored(self):
        assert resolve_video_embed("  https://youtu.be/abc  ").video_id == "abc"

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "   ",
            "https://vimeo.com/12345",
            "https://www.youtube.com/",
            "https://notyoutube.com/watch?v=abc",
            "just some text",
        ],
    )
    def test_invalid_urls(self, url):
        with pytest.raises(ContentValidationError) as exc_info:
            resolve_video_embed(url)
        assert str(exc_info.value) == INVALID_YOUTUBE_MESSAGE


class TestDetectPlatform:
    """Tests for platform detection on raw embed markup."""

    @pytest.mark.parametrize(
        "code, platform",
        [
            ('<blockquote class="twitter-tweet"></blockquote>', "twitter"),
            ('<a href="https://x.com/user/status/1">t</a>', "twitter"),
            ('<blockquote class="instagram-media"></blockquote>', "instagram"),
            ('<blockquote class="tiktok-embed"></blockquote>', "tiktok"),
            ("<div>something else</div>", "generic"),
        ],
    )
    def test_platforms(self, code, platform):
        assert detect_platform(code) == platform

    def test_is_embed_code(self):
        assert is_embed_code("<blockquote></blockquote>")
        assert not is_embed_code("https://x.com/user/status/1")


class TestResolveSocialEmbed:
    """Tests for social embed resolution from URLs and raw markup."""

    def test_raw_markup_passes_through(self):
        code = '<blockquote class="twitter-tweet"><a href="https://twitter.com/a/status/9">t</a></blockquote>'
        target = resolve_social_embed(code)
        assert target.platform == "twitter"
        assert target.html == code
        assert target.url is None

    @pytest.mark.parametrize(
        "url",
        [
            "https://twitter.com/newsdesk/status/1234567890",
            "https://x.com/newsdesk/status/1234567890",
            "https://mobile.twitter.com/newsdesk/status/1234567890?s=20",
        ],
    )
    def test_tweet_urls(self, url):
        target = resolve_social_embed(url)
        assert target.platform == "twitter"
        assert target.post_id == "1234567890"
        assert 'class="twitter-tweet"' in target.html
        assert "platform.twitter.com/widgets.js" in target.html
        assert target.url == url

    @pytest.mark.parametrize("kind", ["p", "reel"])
    def test_instagram_urls(self, kind):
        target = resolve_social_embed(f"https://www.instagram.com/{kind}/Cabc_123/")
        assert target.platform == "instagram"
        assert target.post_id == "Cabc_123"
        assert f"https://www.instagram.com/{kind}/Cabc_123/embed" in target.html

    def test_tiktok_video_url(self):
        target = resolve_social_embed("https://www.tiktok.com/@chef/video/7212345678901234567")
        assert target.platform == "tiktok"
        assert target.post_id == "7212345678901234567"
        assert 'data-video-id="7212345678901234567"' in target.html

    def test_tiktok_short_url(self):
        target = resolve_social_embed("https://www.tiktok.com/t/ZTabc123/")
        assert target.post_id == "ZTabc123"

    def test_empty_input(self):
        with pytest.raises(ContentValidationError):
            resolve_social_embed("   ")

    def test_unsupported_platform(self):
        with pytest.raises(ContentValidationError) as exc_info:
            resolve_social_embed("https://www.facebook.com/post/1")
        assert str(exc_info.value) == UNSUPPORTED_SOCIAL_MESSAGE

    @pytest.mark.parametrize(
        "url",
        [
            "https://twitter.com/newsdesk",
            "https://www.instagram.com/newsdesk/",
            "https://www.tiktok.com/@chef",
        ],
    )
    def test_urls_without_post_id(self, url):
        with pytest.raises(ContentValidationError):
            resolve_social_embed(url)
