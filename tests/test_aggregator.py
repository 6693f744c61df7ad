"""Tests for per-application aggregation and ranking."""

import plistlib

import pytest

from tests.conftest import make_row
from vitality.aggregator import (
    bundle_display_name,
    is_app_name,
    resolve_app_name,
    top_cpu_apps,
    top_memory_apps,
)


@pytest.fixture(autouse=True)
def clear_bundle_cache():
    bundle_display_name.cache_clear()
    yield
    bundle_display_name.cache_clear()


class TestResolveAppName:
    @pytest.mark.parametrize(
        "command,expected",
        [
            ("/Applications/Google Chrome.app/Contents/MacOS/Google Chrome", "Google Chrome"),
            (
                "/Applications/Google Chrome.app/Contents/Frameworks/Google Chrome Framework.framework"
                "/Helpers/Google Chrome Helper (Renderer).app/Contents/MacOS/Google Chrome Helper (Renderer)",
                "Google Chrome",
            ),
            ("Code Helper (Plugin)", "Visual Studio Code"),
            ("/Applications/Xcode.app/Contents/MacOS/Xcode", "Xcode"),
            ("/Applications/iTerm.app/Contents/MacOS/iTerm2", "iTerm"),
            ("zoom.us", "Zoom"),
            ("Slack Helper (GPU)", "Slack"),
        ],
    )
    def test_overrides(self, command, expected):
        assert resolve_app_name(command) == expected

    def test_strips_path_and_extension(self):
        assert resolve_app_name("/usr/libexec/mds_stores") == "mds_stores"
        assert resolve_app_name("/usr/local/bin/tool.sh") == "tool"

    def test_keeps_numeric_suffix(self):
        assert resolve_app_name("/opt/homebrew/bin/python3.11") == "python3.11"

    def test_reverse_dns_leaf_is_unchanged(self):
        assert resolve_app_name("com.apple.WebKit.WebContent") == "com.apple.WebKit.WebContent"

    def test_bundle_display_name_from_info_plist(self, tmp_path):
        bundle = tmp_path / "Editor.app"
        (bundle / "Contents" / "MacOS").mkdir(parents=True)
        with open(bundle / "Contents" / "Info.plist", "wb") as f:
            plistlib.dump({"CFBundleDisplayName": "Fancy Editor"}, f)

        assert resolve_app_name(f"{bundle}/Contents/MacOS/editor-bin") == "Fancy Editor"

    def test_bundle_without_info_plist_uses_stem(self, tmp_path):
        assert resolve_app_name(f"{tmp_path}/Notes Pro.app/Contents/MacOS/np") == "Notes Pro"


class TestIsAppName:
    @pytest.mark.parametrize("name", ["", "?", "-", "(null)", "kernel_task", "com.apple.Safari.History"])
    def test_rejects_non_apps(self, name):
        assert is_app_name(name) is False

    def test_accepts_app(self):
        assert is_app_name("WindowServer") is True


class TestTopCpuApps:
    def test_merges_rows_by_name(self):
        """Helpers fold into their app: CPU is summed, the first pid is kept."""
        rows = [
            make_row("/Applications/Google Chrome.app/Contents/MacOS/Google Chrome", pid=100, cpu=2.0),
            make_row("Google Chrome Helper (Renderer)", pid=101, cpu=3.5),
            make_row("WindowServer", pid=50, cpu=1.0),
        ]

        apps = top_cpu_apps(rows)

        chrome = [a for a in apps if a.name == "Google Chrome"]
        assert len(chrome) == 1
        assert chrome[0].cpu_percent == pytest.approx(5.5)
        assert chrome[0].pid == 100

    def test_stable_descending_with_ties(self):
        rows = [
            make_row("Alpha", pid=1, cpu=12.0),
            make_row("Bravo", pid=2, cpu=12.0),
            make_row("Charlie", pid=3, cpu=5.0),
            make_row("Delta", pid=4, cpu=20.0),
        ]

        apps = top_cpu_apps(rows, top_n=3)

        assert [a.name for a in apps] == ["Delta", "Alpha", "Bravo"]

    def test_truncates_to_top_n(self):
        rows = [make_row(f"app{i}", pid=i, cpu=float(i + 1)) for i in range(10)]
        assert len(top_cpu_apps(rows, top_n=5)) == 5

    def test_noise_floor(self):
        rows = [
            make_row("Idle", pid=1, cpu=0.05),
            make_row("Edge", pid=2, cpu=0.1),
            make_row("Busy", pid=3, cpu=0.2),
        ]
        assert [a.name for a in top_cpu_apps(rows)] == ["Busy"]

    def test_drops_non_app_rows(self):
        rows = [
            make_row("kernel_task", pid=0, cpu=40.0),
            make_row("com.apple.WebKit.Networking", pid=9, cpu=10.0),
            make_row("Finder", pid=10, cpu=1.0),
        ]
        assert [a.name for a in top_cpu_apps(rows)] == ["Finder"]


class TestTopMemoryApps:
    def test_sums_memory_without_pid(self):
        rows = [
            make_row("Slack", pid=1, mem=300.0),
            make_row("Slack Helper (Renderer)", pid=2, mem=200.0),
            make_row("Finder", pid=3, mem=100.0),
        ]

        apps = top_memory_apps(rows)

        assert apps[0].name == "Slack"
        assert apps[0].memory_mb == pytest.approx(500.0)
        assert all(a.pid is None for a in apps)

    def test_noise_floor(self):
        rows = [
            make_row("Tiny", pid=1, mem=0.5),
            make_row("Exact", pid=2, mem=1.0),
            make_row("Real", pid=3, mem=64.0),
        ]
        assert [a.name for a in top_memory_apps(rows)] == ["Real"]

    def test_empty_input(self):
        assert top_memory_apps([]) == ()
