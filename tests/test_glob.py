"""Tests for repo-path glob matching."""

import pytest

from filterpush._glob import expand, glob_match_path


PATHS = [
    ".env",
    "README.md",
    "config",
    "config/app.local",
    "config/prod",
    "config/prod/db.local",
    "docs",
    "docs/notes.md",
    "keys",
    "keys/server.pem",
    "server.pem",
]


class TestUnanchored:
    def test_matches_at_any_depth(self):
        assert expand("*.pem", PATHS) == ["keys/server.pem", "server.pem"]

    def test_matches_dotfiles(self):
        assert glob_match_path("*.env", ".env") is True
        assert glob_match_path("*", ".env") is True

    def test_matches_directories(self):
        assert "docs" in expand("doc?", PATHS)

    def test_case_sensitive(self):
        assert glob_match_path("readme.md", "README.md") is False

    def test_bracket(self):
        assert expand("[kd]*", PATHS) == ["config/prod/db.local", "docs", "keys"]


class TestAnchored:
    def test_single_level(self):
        assert expand("config/*.local", PATHS) == ["config/app.local"]

    def test_star_does_not_cross_slash(self):
        assert glob_match_path("config/*", "config/prod/db.local") is False

    def test_double_star_any_depth(self):
        assert expand("config/**/*.local", PATHS) == [
            "config/app.local", "config/prod/db.local",
        ]

    def test_leading_double_star(self):
        assert expand("**/*.md", PATHS) == ["README.md", "docs/notes.md"]

    def test_trailing_double_star(self):
        assert expand("docs/**", PATHS) == ["docs", "docs/notes.md"]

    def test_anchored_not_nested(self):
        assert glob_match_path("docs/*.md", "other/docs/notes.md") is False

    def test_leading_slash_anchors_nothing_extra(self):
        assert expand("/keys/*", PATHS) == ["keys/server.pem"]


class TestEdgeCases:
    @pytest.mark.parametrize("pattern", ["", "/", "//"])
    def test_empty_pattern_matches_nothing(self, pattern):
        assert expand(pattern, PATHS) == []

    def test_no_matches(self):
        assert expand("*.nothing", PATHS) == []

    def test_double_star_alone(self):
        assert expand("**", PATHS) == sorted(PATHS)
