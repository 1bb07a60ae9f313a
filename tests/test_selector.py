from nota.languages import primary_code, resolve_language, supported_languages
from nota.providers.selector import ProviderSelector
from nota.schemas import ProviderConfig, ProviderKind, RecordingSettings


def _settings(keys: dict, language: str = "auto", preference=None) -> RecordingSettings:
    providers = {
        kind: ProviderConfig(kind=kind, api_key=key, language_hint=language)
        for kind, key in keys.items()
    }
    return RecordingSettings(providers=providers, language=language, preference=preference)


ALL_KEYS = {
    ProviderKind.DEEPGRAM: "dg-key",
    ProviderKind.ASSEMBLYAI: "aai-key",
    ProviderKind.WHISPER: "sk-key",
}


def test_chain_follows_fixed_priority():
    selector = ProviderSelector(system_locale="en_US")

    chain = selector.select_chain(_settings(ALL_KEYS, language="en"))

    assert [c.kind for c in chain] == [ProviderKind.DEEPGRAM, ProviderKind.ASSEMBLYAI, ProviderKind.WHISPER]


def test_providers_without_keys_are_skipped():
    selector = ProviderSelector(system_locale="en_US")
    keys = {ProviderKind.DEEPGRAM: "", ProviderKind.ASSEMBLYAI: "aai-key", ProviderKind.WHISPER: "  "}

    chain = selector.select_chain(_settings(keys, language="en"))

    assert [c.kind for c in chain] == [ProviderKind.ASSEMBLYAI]


def test_no_keys_gives_empty_chain():
    selector = ProviderSelector(system_locale="en_US")

    assert selector.select_chain(RecordingSettings()) == []


def test_explicit_preference_goes_first():
    selector = ProviderSelector(system_locale="en_US")

    chain = selector.select_chain(_settings(ALL_KEYS, language="en"), explicit_preference=ProviderKind.WHISPER)

    assert [c.kind for c in chain] == [ProviderKind.WHISPER, ProviderKind.DEEPGRAM, ProviderKind.ASSEMBLYAI]


def test_settings_preference_used_when_no_explicit_one():
    selector = ProviderSelector(system_locale="en_US")
    settings = _settings(ALL_KEYS, language="en", preference=ProviderKind.ASSEMBLYAI)

    chain = selector.select_chain(settings)

    assert chain[0].kind is ProviderKind.ASSEMBLYAI


def test_unsupported_language_excludes_restricted_provider():
    selector = ProviderSelector(system_locale="en_US")

    chain = selector.select_chain(_settings(ALL_KEYS, language="ru"))

    assert [c.kind for c in chain] == [ProviderKind.DEEPGRAM, ProviderKind.WHISPER]


def test_ineligible_preference_is_ignored():
    selector = ProviderSelector(system_locale="en_US")

    chain = selector.select_chain(_settings(ALL_KEYS, language="ja"), explicit_preference=ProviderKind.ASSEMBLYAI)

    assert [c.kind for c in chain] == [ProviderKind.DEEPGRAM, ProviderKind.WHISPER]


def test_auto_language_follows_system_locale():
    selector = ProviderSelector(system_locale="ru_RU")

    assert selector.resolve_language(_settings(ALL_KEYS)) == "ru-RU"
    assert [c.kind for c in selector.select_chain(_settings(ALL_KEYS))] == [
        ProviderKind.DEEPGRAM,
        ProviderKind.WHISPER,
    ]


def test_language_resolution_helpers():
    assert resolve_language("de") == "de-DE"
    assert resolve_language("auto", system="pt_BR.UTF-8") == "pt-BR"
    assert resolve_language("xx") == "en-US"
    assert primary_code("nb-NO") == "no"
    assert primary_code(None) == "en"
    assert supported_languages()[0] == ("auto", "Auto-detect")
    assert ("ru", "Русский") in supported_languages()


def test_keyed_provider_kept_when_language_filter_removes_everything():
    selector = ProviderSelector(system_locale="en_US")

    chain = selector.select_chain(_settings({ProviderKind.ASSEMBLYAI: "aai-key"}, language="ru"))

    assert [c.kind for c in chain] == [ProviderKind.ASSEMBLYAI]
