"""Unit tests for gathering build resources from a directory."""

from __future__ import annotations

from pathlib import Path

import pytest

from percy_sync.core import walker
from percy_sync.core.hasher import sha256_hex
from percy_sync.core.walker import gather_build_resources


@pytest.fixture
def site(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_text("<html></html>")
    (root / "my file.png").write_bytes(b"\x89PNG")
    (root / "app.js.map").write_text("{}")
    (root / "css" / "app.css").write_bytes(b"body{}")
    return root


class TestGatherBuildResources:
    def test_urls_are_relative_and_encoded(self, site):
        urls = [r.resource_url for r in gather_build_resources(site)]
        assert urls == ["/app.js.map", "/index.html", "/my%20file.png", "/css/app.css"]

    def test_resources_hash_file_bytes(self, site):
        by_url = {r.resource_url: r for r in gather_build_resources(site)}
        css = by_url["/css/app.css"]
        assert css.sha == sha256_hex(b"body{}")
        assert css.content is None
        assert css.local_path == (site / "css" / "app.css").resolve()
        assert css.read_content() == b"body{}"

    def test_base_url_path(self, site):
        urls = [r.resource_url for r in gather_build_resources(site, base_url_path="/assets/")]
        assert "/assets/index.html" in urls
        assert "/assets/css/app.css" in urls

    def test_skip_patterns(self, site):
        resources = gather_build_resources(site, skipped_path_regexes=[r"\.map$", r"^/css/"])
        assert [r.resource_url for r in resources] == ["/index.html", "/my%20file.png"]

    def test_skip_patterns_match_unencoded_url(self, tmp_path):
        root = tmp_path / "site"
        (root / "my drafts").mkdir(parents=True)
        (root / "my drafts" / "a.html").write_text("draft")
        (root / "index.html").write_text("home")
        resources = gather_build_resources(root, skipped_path_regexes=[r"^/my drafts/"])
        assert [r.resource_url for r in resources] == ["/index.html"]

    def test_skip_patterns_see_base_url_path(self, site):
        resources = gather_build_resources(
            site, base_url_path="/assets", skipped_path_regexes=[r"^/assets/my file"]
        )
        assert "/assets/my%20file.png" not in [r.resource_url for r in resources]

    def test_large_files_are_skipped(self, site, monkeypatch, caplog):
        monkeypatch.setattr(walker, "MAX_FILE_SIZE_BYTES", 4)
        with caplog.at_level("WARNING", logger="percy_sync.core.walker"):
            resources = gather_build_resources(site)
        assert [r.resource_url for r in resources] == ["/app.js.map", "/my%20file.png"]
        assert "Skipping large build resource: /index.html" in caplog.text

    def test_empty_directory(self, tmp_path):
        assert gather_build_resources(tmp_path) == []
