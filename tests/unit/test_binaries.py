"""
Unit tests for deriving fingerprints from installed curl-impersonate wrappers.
"""

import os

import pytest

from curl_scraper.browser.binaries import (
    catalog_from_binaries,
    discover_binaries,
    fingerprint_for_binary,
    parse_binary_name,
)
from curl_scraper.config import ScraperConfig, TransportSettings
from curl_scraper.http.transport import CurlImpersonateTransport
from curl_scraper.orchestrator import build_catalog


@pytest.fixture
def wrappers_dir(tmp_path):
    for name in ("curl_chrome116", "curl_safari17_2_ios", "curl_opera90", "notes.txt"):
        (tmp_path / name).write_text("#!/bin/sh\n")
    (tmp_path / "curl_chrome120").mkdir()
    return tmp_path


class TestParseBinaryName:
    def test_chrome_defaults_to_windows_desktop(self):
        target = parse_binary_name("curl_chrome116")

        assert (target.browser, target.version, target.os, target.platform) == (
            "chrome", "116", "windows", "desktop")
        assert target.name == "chrome116"
        assert target.binary_name == "curl_chrome116"

    def test_chrome_platform_suffix(self):
        target = parse_binary_name("curl_chrome99_android")

        assert target.os == "android"
        assert target.platform == "mobile"
        assert target.name == "chrome99_android"
        assert target.release == "99"

    def test_safari_ios_release(self):
        target = parse_binary_name("curl_safari17_2_ios")

        assert target.os == "ios"
        assert target.platform == "mobile"
        assert target.release == "17.2"

    def test_safari_desktop(self):
        target = parse_binary_name("curl_safari15_5")
        assert (target.os, target.platform, target.release) == ("macos", "desktop", "15.5")

    def test_firefox_edge_and_tor(self):
        assert parse_binary_name("curl_ff133").browser == "firefox"
        assert parse_binary_name("curl_firefox133").os == "macos"
        assert parse_binary_name("curl_edge101").os == "windows"
        assert parse_binary_name("curl_tor145").browser == "tor"

    @pytest.mark.parametrize("filename", [
        "curl-impersonate", "curl_opera90", "curl_chrome", "README", "chrome116",
    ])
    def test_unrecognized_names(self, filename):
        assert parse_binary_name(filename) is None


class TestFingerprintForBinary:
    def test_chrome_windows_headers(self):
        fp = fingerprint_for_binary(parse_binary_name("curl_chrome116"))

        assert fp.user_agent == ("Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                                 "(KHTML, like Gecko) Chrome/116.0.0.0 Safari/537.36")
        assert fp.headers["sec-ch-ua-platform"] == '"Windows"'
        assert '"Google Chrome";v="116"' in fp.headers["sec-ch-ua"]
        assert fp.headers["Accept-Encoding"] == "gzip, deflate, br"
        assert fp.binary_name == "curl_chrome116"
        assert fp.impersonate is None

    def test_android_is_mobile(self):
        fp = fingerprint_for_binary(parse_binary_name("curl_chrome99_android"))

        assert "Android" in fp.user_agent and "Mobile Safari" in fp.user_agent
        assert fp.headers["sec-ch-ua-mobile"] == "?1"
        assert fp.headers["sec-ch-ua-platform"] == '"Android"'

    def test_edge_appends_edg_token(self):
        fp = fingerprint_for_binary(parse_binary_name("curl_edge101"))

        assert fp.user_agent.endswith(" Edg/101.0.0.0")
        assert '"Microsoft Edge";v="101"' in fp.headers["sec-ch-ua"]

    def test_safari_ios_user_agent(self):
        fp = fingerprint_for_binary(parse_binary_name("curl_safari17_2_ios"))

        assert "iPhone" in fp.user_agent
        assert "Version/17.2" in fp.user_agent
        assert fp.display_name == "Safari 17.2 iOS"
        assert fp.headers["sec-ch-ua-platform"] == '"iOS"'

    def test_firefox_family_reuses_builtin_tls(self):
        fp = fingerprint_for_binary(parse_binary_name("curl_firefox133"))

        assert "Firefox/133.0" in fp.user_agent
        assert fp.tls.http2_stream_weight == 42


class TestDiscovery:
    def test_discovers_wrapper_files_only(self, wrappers_dir):
        targets = discover_binaries(wrappers_dir)
        assert [target.binary_name for target in targets] == ["curl_chrome116", "curl_safari17_2_ios"]

    def test_missing_directory(self, tmp_path):
        assert discover_binaries(tmp_path / "absent") == []

    def test_catalog_from_binaries(self, wrappers_dir):
        catalog = catalog_from_binaries(wrappers_dir)

        assert catalog.list() == ["chrome116", "safari17_2_ios"]
        assert catalog.get("chrome116").binary_name == "curl_chrome116"

    def test_empty_directory_without_defaults(self, tmp_path):
        with pytest.raises(ValueError):
            catalog_from_binaries(tmp_path)

    def test_defaults_come_first(self, wrappers_dir):
        catalog = catalog_from_binaries(wrappers_dir, include_defaults=True)

        assert len(catalog) == 7
        assert catalog.list()[-2:] == ["chrome116", "safari17_2_ios"]

    def test_transport_runs_the_wrapper(self, wrappers_dir):
        fp = catalog_from_binaries(wrappers_dir).get("chrome116")
        transport = CurlImpersonateTransport(binaries_path=str(wrappers_dir))

        assert transport.resolve_executable(fp) == (os.path.join(str(wrappers_dir), "curl_chrome116"), False)


class TestBuildCatalog:
    def test_discovery_enabled(self, wrappers_dir):
        config = ScraperConfig(transport=TransportSettings(binaries_path=str(wrappers_dir),
                                                           discover_binaries=True))

        catalog = build_catalog(config)

        assert "chrome116" in catalog
        assert "chrome131-windows" in catalog

    def test_discovery_disabled_by_default(self, wrappers_dir):
        config = ScraperConfig(transport=TransportSettings(binaries_path=str(wrappers_dir)))
        assert "chrome116" not in build_catalog(config)

    def test_discovery_requires_path(self):
        with pytest.raises(ValueError):
            TransportSettings(discover_binaries=True)
