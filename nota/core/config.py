import os
from pathlib import Path
from dotenv import load_dotenv

from nota.schemas import ProviderConfig, ProviderKind, RecordingSettings

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_PROJECT_ENV_PATH = _PROJECT_ROOT / ".env"
load_dotenv(dotenv_path=_PROJECT_ENV_PATH, override=True)


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name) or default)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name) or default)
    except ValueError:
        return default


OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()

INSIGHT_MODEL = str(os.getenv("NOTA_INSIGHT_MODEL") or "gpt-4o-mini").strip()
ANALYSIS_MODEL = str(os.getenv("NOTA_ANALYSIS_MODEL") or "gpt-4o-mini").strip()
WHISPER_MODEL = str(os.getenv("NOTA_WHISPER_MODEL") or "whisper-1").strip()
DEEPGRAM_MODEL = str(os.getenv("NOTA_DEEPGRAM_MODEL") or "nova-2").strip()

# Scheduler timing (seconds)
TRANSCRIPT_INTERVAL = max(1.0, _env_float("NOTA_TRANSCRIPT_INTERVAL", 6.0))
INSIGHT_INTERVAL = max(5.0, _env_float("NOTA_INSIGHT_INTERVAL", 45.0))
RPC_TIMEOUT = max(1.0, _env_float("NOTA_RPC_TIMEOUT", 30.0))

# Insight thresholds (characters)
INSIGHT_MIN_CHARS = max(50, _env_int("NOTA_INSIGHT_MIN_CHARS", 120))
INSIGHT_MIN_GROWTH = 50
INSIGHT_MAX_TOKENS = 150
INSIGHT_TAIL_CHARS = 1600

# Provider transport timing (seconds)
WHISPER_INTERVAL = max(1.0, _env_float("NOTA_WHISPER_INTERVAL", 5.0))
KEEPALIVE_INTERVAL = 5.0
AUDIO_PUSH_INTERVAL = 0.1
CLOSE_GRACE_PERIOD = 0.5
CONNECT_TIMEOUT = 10.0
FAILOVER_REPLAY_SECONDS = 10.0

SESSIONS_PATH = Path(os.getenv("NOTA_SESSIONS_PATH") or (Path.home() / ".nota" / "sessions.json"))
SESSION_HISTORY_LIMIT = 50

_KEY_ENV = {
    ProviderKind.DEEPGRAM: "DEEPGRAM_API_KEY",
    ProviderKind.ASSEMBLYAI: "ASSEMBLYAI_API_KEY",
    ProviderKind.WHISPER: "OPENAI_API_KEY",
}


def load_settings() -> RecordingSettings:
    """
    Snapshot the recording configuration from the environment.
    Read once per recording; later edits apply to the next recording only.
    """
    language = str(os.getenv("NOTA_LANGUAGE") or "auto").strip() or "auto"
    providers: dict[ProviderKind, ProviderConfig] = {}
    for kind, env_name in _KEY_ENV.items():
        key = str(os.getenv(env_name) or "").strip()
        providers[kind] = ProviderConfig(kind=kind, api_key=key or None, language_hint=language)

    raw_preference = str(os.getenv("NOTA_PROVIDER") or "auto").strip().lower()
    preference = None
    if raw_preference and raw_preference != "auto":
        try:
            preference = ProviderKind(raw_preference)
        except ValueError:
            preference = None

    return RecordingSettings(
        providers=providers,
        preference=preference,
        language=language,
        input_device=str(os.getenv("NOTA_INPUT_DEVICE") or "default").strip(),
        openai_api_key=str(os.getenv("OPENAI_API_KEY") or "").strip() or None,
    )
