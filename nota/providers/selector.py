from __future__ import annotations

import logging
from dataclasses import dataclass

from nota.languages import primary_code, resolve_language
from nota.providers.assemblyai import ASSEMBLYAI_LANGUAGES
from nota.schemas import ProviderConfig, ProviderKind, RecordingSettings

logger = logging.getLogger("nota.providers.selector")


@dataclass(frozen=True)
class ProviderPolicy:
    kind: ProviderKind
    priority: int
    streaming: bool
    languages: frozenset | None = None  # None = any language

    def supports(self, language_tag: str) -> bool:
        if self.languages is None:
            return True
        return primary_code(language_tag) in self.languages


DEFAULT_POLICIES = (
    ProviderPolicy(ProviderKind.DEEPGRAM, priority=0, streaming=True),
    ProviderPolicy(ProviderKind.ASSEMBLYAI, priority=1, streaming=True, languages=ASSEMBLYAI_LANGUAGES),
    # Auto-detects per chunk, so no language restriction
    ProviderPolicy(ProviderKind.WHISPER, priority=2, streaming=False),
)


class ProviderSelector:
    """
    Maps settings to an ordered fallback chain.

    A provider is eligible when it has a key and supports the target
    language. An eligible explicit preference goes first; the rest follow
    the fixed priority order. When every keyed provider is restricted away
    from the language, the keyed providers are used anyway. An empty chain
    means nothing is configured.
    """

    def __init__(self, policies=DEFAULT_POLICIES, system_locale: str | None = None):
        self.policies = tuple(sorted(policies, key=lambda p: p.priority))
        self.system_locale = system_locale

    def resolve_language(self, settings: RecordingSettings) -> str:
        return resolve_language(settings.language, self.system_locale)

    def select_chain(
        self,
        settings: RecordingSettings,
        explicit_preference: ProviderKind | None = None,
    ) -> list[ProviderConfig]:
        preference = explicit_preference or settings.preference
        language = self.resolve_language(settings)

        keyed = [settings.provider(p.kind) for p in self.policies if settings.provider(p.kind).has_key]
        supported = {p.kind for p in self.policies if p.supports(language)}

        eligible: list[ProviderConfig] = []
        for config in keyed:
            if config.kind not in supported:
                logger.info("Skipping %s: %s not supported", config.kind.value, language)
                continue
            eligible.append(config)

        if keyed and not eligible:
            # Only restricted providers are keyed; run them with their own language detection.
            logger.warning(
                "No configured provider supports %s; using %s with language detection",
                language,
                [c.kind.value for c in keyed],
            )
            eligible = keyed

        if preference is not None:
            preferred = [c for c in eligible if c.kind is preference]
            if not preferred:
                logger.info("Preferred provider %s unavailable for %s", preference.value, language)
            eligible = preferred + [c for c in eligible if c.kind is not preference]

        logger.info(
            "Provider chain | language=%s chain=%s",
            language,
            [c.kind.value for c in eligible],
        )
        return eligible
