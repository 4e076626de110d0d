import json

from caption_agent.config import AppConfig
from caption_agent.storage import (
    DEFAULTS,
    JsonPreferenceStore,
    MemoryPreferenceStore,
    load_settings,
    load_surface_preferences,
    save_surface_preferences,
)


async def test_defaults_apply_on_first_read():
    store = MemoryPreferenceStore()
    assert await store.get() == DEFAULTS
    assert await store.get(["defaultTone", "unknown"]) == {"defaultTone": "casual", "unknown": None}


async def test_set_merges_with_existing_values():
    store = MemoryPreferenceStore({"apiKey": "sk-1"})
    await store.set({"defaultTone": "funny"})
    assert store.data == {"apiKey": "sk-1", "defaultTone": "funny"}


async def test_json_store_persists(tmp_path):
    path = tmp_path / "nested" / "prefs.json"
    store = JsonPreferenceStore(path)
    await store.set({"hashtagCount": 12})

    assert json.loads(path.read_text(encoding="utf-8")) == {"hashtagCount": 12}
    reopened = JsonPreferenceStore(path)
    assert (await reopened.get(["hashtagCount"]))["hashtagCount"] == 12


async def test_corrupt_json_file_falls_back_to_defaults(tmp_path, caplog):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")
    prefs = await JsonPreferenceStore(path).get()
    assert prefs == DEFAULTS
    assert "prefs.json" in caplog.text


async def test_load_settings_combines_store_and_config():
    store = MemoryPreferenceStore({"apiKey": "sk-x", "useServerProxy": False, "hashtagCount": "9"})
    config = AppConfig(model="gpt-4o-mini", proxy_url="http://p/api/generate", request_timeout=5.0)
    settings = await load_settings(store, config)

    assert settings.api_key == "sk-x"
    assert settings.use_server_proxy is False
    assert settings.hashtag_count == 9
    assert settings.default_tone == "casual"
    assert settings.model == "gpt-4o-mini"
    assert settings.proxy_url == "http://p/api/generate"
    assert settings.timeout == 5.0


async def test_load_settings_ignores_bad_hashtag_count():
    settings = await load_settings(MemoryPreferenceStore({"hashtagCount": "lots"}), AppConfig())
    assert settings.hashtag_count == DEFAULTS["hashtagCount"]


async def test_surface_preferences_round_trip():
    store = MemoryPreferenceStore()
    await save_surface_preferences(store, "inspirational", None, 0)

    assert store.data == {"defaultTone": "inspirational", "hashtagCount": 0}
    prefs = await load_surface_preferences(store)
    assert (prefs.tone, prefs.caption_length, prefs.hashtag_count) == ("inspirational", "medium", 0)
