"""Map a human app name to an installed package identifier."""

import sys
from collections.abc import Callable, Iterable

from thefuzz import fuzz


def _log(msg: str) -> None:
    print(f"[apps] {msg}", file=sys.stderr)


# Checked in order; the first alias contained in the lowercased name wins.
KNOWN_APPS: dict[str, str] = {
    "whatsapp": "com.whatsapp",
    "вотсап": "com.whatsapp",
    "ватсап": "com.whatsapp",
    "telegram": "org.telegram.messenger",
    "телеграм": "org.telegram.messenger",
    "телега": "org.telegram.messenger",
    "chrome": "com.android.chrome",
    "хром": "com.android.chrome",
    "youtube": "com.google.android.youtube",
    "ютуб": "com.google.android.youtube",
    "instagram": "com.instagram.android",
    "инстаграм": "com.instagram.android",
    "инста": "com.instagram.android",
    "vk": "com.vkontakte.android",
    "вк": "com.vkontakte.android",
    "вконтакте": "com.vkontakte.android",
    "gmail": "com.google.android.gm",
    "camera": "com.android.camera2",
    "камера": "com.android.camera2",
    "settings": "com.android.settings",
    "настройки": "com.android.settings",
    "maps": "com.google.android.apps.maps",
    "карты": "com.google.android.apps.maps",
    "calendar": "com.google.android.calendar",
    "календарь": "com.google.android.calendar",
    "calculator": "com.google.android.calculator",
    "калькулятор": "com.google.android.calculator",
    "clock": "com.google.android.deskclock",
    "часы": "com.google.android.deskclock",
}


def lookup_alias(name: str) -> str | None:
    lowered = name.strip().lower()
    for alias, package in KNOWN_APPS.items():
        if alias in lowered:
            return package
    return None


def search_installed(
    name: str, installed: Iterable[tuple[str, str]], threshold: int = 80
) -> str | None:
    """Find a package among (label, package) pairs.

    Labels containing the name are preferred, best fuzzy ratio first. With no
    substring hit, the closest label scoring at least `threshold` is used.
    """
    query = name.strip().lower()
    if not query:
        return None

    apps = [(label or "", package) for label, package in installed if package]
    contained = [(label, pkg) for label, pkg in apps if query in label.lower()]
    if contained:
        label, package = max(contained, key=lambda item: fuzz.ratio(query, item[0].lower()))
        _log(f"'{name}' -> {package} (label '{label}')")
        return package

    best_pkg = None
    best_score = 0
    for label, package in apps:
        score = fuzz.partial_ratio(query, label.lower())
        if score > best_score:
            best_score = score
            best_pkg = package
    if best_score >= threshold:
        _log(f"'{name}' -> {best_pkg} (fuzzy score={best_score})")
        return best_pkg

    _log(f"'{name}' -> no installed app matched (best={best_score})")
    return None


def resolve_package(
    name: str, installed: Callable[[], Iterable[tuple[str, str]]] | None = None
) -> str | None:
    """Alias table first, then installed-app labels (listed only on an alias miss)."""
    package = lookup_alias(name)
    if package:
        return package
    if installed is None:
        return None
    return search_installed(name, installed())
