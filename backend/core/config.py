import os
from pathlib import Path
from dotenv import load_dotenv

_BACKEND_ROOT = Path(__file__).resolve().parents[1]
_BACKEND_ENV_PATH = _BACKEND_ROOT / ".env"
load_dotenv(dotenv_path=_BACKEND_ENV_PATH, override=True)


def _env_flag(name: str, default: str = "false") -> bool:
    return str(os.getenv(name, default)).strip().lower() in {"1", "true", "yes", "on"}


def _env_thresholds(name: str, default: str) -> tuple[int, ...]:
    raw = str(os.getenv(name) or default)
    values = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        values.append(max(1, int(item)))
    return tuple(values) or tuple(int(v) for v in default.split(","))


ENVIRONMENT = str(os.getenv("ENV", "development")).strip().lower()
QA_MODE = _env_flag("QA_MODE")

OPENAI_API_KEY = str(os.getenv("OPENAI_API_KEY") or "").strip()
INTERVIEWER_MODEL = str(os.getenv("INTERVIEWER_MODEL") or "gpt-4o-mini").strip()
ASSESSMENT_MODEL = str(os.getenv("ASSESSMENT_MODEL") or "gpt-4o-mini").strip()
TRANSCRIBE_MODEL = str(os.getenv("TRANSCRIBE_MODEL") or "whisper-1").strip()
TTS_MODEL = str(os.getenv("TTS_MODEL") or "tts-1").strip()
TTS_VOICE = str(os.getenv("TTS_VOICE") or "nova").strip()

INVITE_TOKEN_SECRET = str(os.getenv("INVITE_TOKEN_SECRET") or "").strip()
ALLOW_UNVERIFIED_INVITES = _env_flag("ALLOW_UNVERIFIED_INVITES")

COLLABORATOR_TIMEOUT_SEC = max(1.0, float(os.getenv("COLLABORATOR_TIMEOUT_SEC", "30")))
LLM_RETRIES = max(0, int(os.getenv("LLM_RETRIES", "0")))

# Warmup, ClaimVerification, Scenario, Depth, Reflection
PHASE_THRESHOLDS = _env_thresholds("PHASE_THRESHOLDS", "3,3,3,3,2")
MAX_CANDIDATE_TURNS = max(1, int(os.getenv("MAX_CANDIDATE_TURNS", "20")))

REASSURANCE_PROBABILITY = min(1.0, max(0.0, float(os.getenv("REASSURANCE_PROBABILITY", "0.5"))))
_seed_raw = str(os.getenv("REASSURANCE_SEED") or "").strip()
REASSURANCE_SEED = int(_seed_raw) if _seed_raw else None

SESSION_RETENTION_SEC = max(60, int(os.getenv("SESSION_RETENTION_SEC", "86400")))
SESSION_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("SESSION_CLEANUP_INTERVAL_SEC", "600")))
MAX_PENDING_AUDIO_BYTES = max(1024, int(os.getenv("MAX_PENDING_AUDIO_BYTES", str(10 * 1024 * 1024))))
MAX_WS_TEXT_BYTES = max(1024, int(os.getenv("WS_MAX_TEXT_BYTES", str(16 * 1024 * 1024))))

DATA_DIR = Path(os.getenv("DATA_DIR") or (_BACKEND_ROOT / "data")).resolve()
