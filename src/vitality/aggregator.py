"""Per-application aggregation of process rows into top-N rankings.

Helper, renderer and agent processes are folded into the application they
belong to, summed per display name, filtered against a noise floor and
ranked descending. Ties keep their input order.
"""

import os
import plistlib
import re
from collections.abc import Callable, Iterable
from dataclasses import replace
from functools import lru_cache
from pathlib import Path

from vitality.models import AppUsage, ProcessRow

# Case-insensitive substring -> display name. Checked in order, so more
# specific needles come first ("xcode" before "code").
APP_NAME_OVERRIDES: tuple[tuple[str, str], ...] = (
    ("google chrome", "Google Chrome"),
    ("chrome", "Google Chrome"),
    ("microsoft edge", "Microsoft Edge"),
    ("brave browser", "Brave Browser"),
    ("firefox", "Firefox"),
    ("safari", "Safari"),
    ("iterm", "iTerm"),
    ("terminal", "Terminal"),
    ("xcode", "Xcode"),
    ("code helper", "Visual Studio Code"),
    ("visual studio code", "Visual Studio Code"),
    ("pycharm", "PyCharm"),
    ("zoom", "Zoom"),
    ("microsoft teams", "Microsoft Teams"),
    ("slack", "Slack"),
    ("discord", "Discord"),
)

IGNORED_NAMES = frozenset({"", "?", "-", "(null)", "kernel_task"})

# com.apple.WebKit.WebContent, org.mozilla.updater, ...
_REVERSE_DNS = re.compile(r"^[A-Za-z0-9-]+(\.[A-Za-z0-9_-]+){2,}$")
_APP_BUNDLE = re.compile(r"^(.*?/[^/]+\.app)(/|$)")


def _strip_extension(leaf: str) -> str:
    """Drop an alphabetic extension ("zoom.us" -> "zoom"), keep "python3.11"."""
    stem, suffix = os.path.splitext(leaf)
    if stem and suffix[1:].isalpha():
        return stem
    return leaf


@lru_cache(maxsize=512)
def bundle_display_name(bundle_path: str) -> str:
    """Display name of an .app bundle from its Info.plist, else the bundle's stem."""
    fallback = Path(bundle_path).stem
    info_plist = Path(bundle_path) / "Contents" / "Info.plist"
    try:
        with open(info_plist, "rb") as f:
            info = plistlib.load(f)
    except (OSError, plistlib.InvalidFileException, ValueError):
        return fallback
    if not isinstance(info, dict):
        return fallback
    name = info.get("CFBundleDisplayName") or info.get("CFBundleName")
    return name if isinstance(name, str) and name.strip() else fallback


def resolve_app_name(command: str) -> str:
    """Resolve a raw command (path or bare name) to an application display name."""
    leaf = command.strip().rstrip("/").rsplit("/", 1)[-1].strip()
    if _REVERSE_DNS.match(leaf):
        return leaf

    name = _strip_extension(leaf)
    lowered = name.lower()
    for needle, display in APP_NAME_OVERRIDES:
        if needle in lowered:
            return display

    bundle = _APP_BUNDLE.match(command.strip())
    if bundle:
        return bundle_display_name(bundle.group(1))

    return name


def is_app_name(name: str) -> bool:
    """False for kernel_task, placeholders and reverse-DNS service identifiers."""
    return name.strip() not in IGNORED_NAMES and not _REVERSE_DNS.match(name)


def rank(
    apps: Iterable[AppUsage],
    key: Callable[[AppUsage], float],
    top_n: int,
) -> tuple[AppUsage, ...]:
    """Stable descending sort by key, truncated to top_n."""
    return tuple(sorted(apps, key=key, reverse=True)[:top_n])


def _merge_by_name(rows: Iterable[ProcessRow], keep_pid: bool) -> dict[str, AppUsage]:
    merged: dict[str, AppUsage] = {}
    for row in rows:
        name = resolve_app_name(row.command)
        if not is_app_name(name):
            continue
        existing = merged.get(name)
        if existing is None:
            merged[name] = AppUsage(
                name=name,
                pid=row.pid if keep_pid else None,
                cpu_percent=row.cpu_percent,
                memory_mb=row.memory_mb,
            )
        else:
            # First-seen pid wins; metrics are summed
            merged[name] = replace(
                existing,
                cpu_percent=existing.cpu_percent + row.cpu_percent,
                memory_mb=existing.memory_mb + row.memory_mb,
            )
    return merged


def top_cpu_apps(
    rows: Iterable[ProcessRow],
    top_n: int = 5,
    cpu_floor: float = 0.1,
) -> tuple[AppUsage, ...]:
    """Rank applications by summed CPU%, keeping the first-seen pid per name."""
    merged = _merge_by_name(rows, keep_pid=True)
    candidates = [app for app in merged.values() if app.cpu_percent > cpu_floor]
    return rank(candidates, key=lambda a: a.cpu_percent, top_n=top_n)


def top_memory_apps(
    rows: Iterable[ProcessRow],
    top_n: int = 5,
    memory_floor_mb: float = 1.0,
) -> tuple[AppUsage, ...]:
    """Rank applications by summed resident memory; entries carry no pid."""
    merged = _merge_by_name(rows, keep_pid=False)
    candidates = [app for app in merged.values() if app.memory_mb > memory_floor_mb]
    return rank(candidates, key=lambda a: a.memory_mb, top_n=top_n)
