from droidrunner import app_lookup


def test_alias_table_matches_substring_case_insensitively():
    assert app_lookup.lookup_alias("WhatsApp") == "com.whatsapp"
    assert app_lookup.lookup_alias("open Telegram please") == "org.telegram.messenger"
    assert app_lookup.lookup_alias("Настройки") == "com.android.settings"
    assert app_lookup.lookup_alias("ютуб") == "com.google.android.youtube"
    assert app_lookup.lookup_alias("Notepad") is None


def test_installed_search_prefers_closest_containing_label():
    installed = [("Notes Pro Max", "com.pro.notes"), ("Notes", "com.simple.notes"), ("Maps", "com.maps")]
    assert app_lookup.search_installed("notes", installed) == "com.simple.notes"


def test_installed_search_fuzzy_fallback_with_threshold():
    installed = [("Spotify", "com.spotify.music"), ("Signal", "org.thoughtcrime.securesms")]
    assert app_lookup.search_installed("spotfiy", installed) == "com.spotify.music"
    assert app_lookup.search_installed("zzzz", installed) is None
    assert app_lookup.search_installed("  ", installed) is None


def test_resolve_package_order():
    installed = [("WhatsApp Business", "com.whatsapp.w4b")]
    assert app_lookup.resolve_package("WhatsApp", lambda: installed) == "com.whatsapp"
    assert app_lookup.resolve_package("Business", lambda: installed) == "com.whatsapp.w4b"
    assert app_lookup.resolve_package("Business") is None
