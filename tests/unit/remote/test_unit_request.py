# tests/unit/remote/test_unit_request.py — v1
"""Tests for remote/request.py."""

from __future__ import annotations

from rfgbuild.remote.request import build_request, camel_to_underscore, underscore_keys


class TestCamelToUnderscore:
    def test_simple(self):
        assert camel_to_underscore("backgroundColor") == "background_color"

    def test_already_snake(self):
        assert camel_to_underscore("picture_aspect") == "picture_aspect"

    def test_nested_keys(self):
        assert underscore_keys({"desktopBrowser": {"themeColor": "#fff"}, "list": [{"aB": 1}]}) == {
            "desktop_browser": {"theme_color": "#fff"},
            "list": [{"a_b": 1}],
        }


class TestBuildRequest:
    def test_root_location(self):
        request = build_request(
            {
                "apiKey": "k",
                "masterPicture": {"type": "url", "url": "https://x/a.png"},
                "design": {"desktopBrowser": {}},
            }
        )
        assert request == {
            "api_key": "k",
            "master_picture": {"type": "url", "url": "https://x/a.png"},
            "files_location": {"type": "root"},
            "favicon_design": {"desktop_browser": {}},
        }

    def test_path_location_and_optional_sections(self):
        request = build_request(
            {
                "apiKey": "k",
                "design": {},
                "iconsPath": "/static/icons",
                "settings": {"compression": 3, "errorOnImageTooSmall": True},
                "versioning": {"paramName": "v", "paramValue": "2"},
            }
        )
        assert request["files_location"] == {"type": "path", "path": "/static/icons"}
        assert request["settings"] == {"compression": 3, "error_on_image_too_small": True}
        assert request["versioning"] == {"param_name": "v", "param_value": "2"}

    def test_slash_icons_path_is_root(self):
        assert build_request({"iconsPath": "/"})["files_location"] == {"type": "root"}
