"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    GENERATOR_PROVIDER        — "ollama" (default) or "openai" (any OpenAI-compatible endpoint)
    OLLAMA_BASE_URL           — Ollama server root (default: http://localhost:11434)
    OPENAI_BASE_URL           — OpenAI-compatible API root (used when provider is "openai")
    OPENAI_API_KEY            — Bearer token for the OpenAI-compatible endpoint
    PRIMARY_MODEL             — Model used for every regular iteration
    FALLBACK_MODEL            — Higher-capability model used once the iteration budget is spent
    MAX_CYCLES                — Outer retry envelope around the iteration loop (default: 2)
    MAX_ITERATIONS            — Iterations per cycle (default: 30)
    FALLBACK_ATTEMPTS         — Fallback generator calls per escalation (default: 1)
    SUCCESS_MARKER            — Literal substring in build output meaning "all tests passed"
    ALLOWED_DEPENDENCY_GROUPS — Comma separated groupIds the manifest merger may add
    BUILD_MODE                — "local" (subprocess) or "docker" (ephemeral container)
    MAVEN_COMMAND             — Maven executable for local builds (default: mvn)
    DOCKER_IMAGE              — Maven image for docker builds
    BUILD_TIMEOUT_SECONDS     — Max seconds for one build (0 = no limit)
    GENERATOR_TIMEOUT_SECONDS — Max seconds for one generator call (0 = no limit)
    LOG_DIR                   — Directory for the daily log file (default: logs)
    LOG_LEVEL                 — Root log level name (default: INFO)
    LOG_FILE_PREFIX           — Daily log file name prefix (default: tdd_agent)
    RESULTS_DIR               — Directory for results JSON files (default: results)
    MAX_KEPT_RUNS             — Finished API runs kept in memory (default: 100)
    CORS_ORIGINS              — Comma separated origins allowed to call the API

Timeout Philosophy:
    The convergence loop itself never imposes a timeout. Both timeouts above
    are transport-level limits applied by the collaborators; a timed-out call
    fails open exactly like any other transport error.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _optional_seconds(name: str, default: int) -> float | None:
    seconds = float(os.getenv(name, default))
    return seconds if seconds > 0 else None


# Generator
GENERATOR_PROVIDER = os.getenv("GENERATOR_PROVIDER", "ollama").lower()
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
PRIMARY_MODEL = os.getenv("PRIMARY_MODEL", "deepseek-coder-v2:16b")
FALLBACK_MODEL = os.getenv("FALLBACK_MODEL", "deepseek-r1:70b")
GENERATOR_TIMEOUT_SECONDS = _optional_seconds("GENERATOR_TIMEOUT_SECONDS", 0)

# Convergence policy
MAX_CYCLES = int(os.getenv("MAX_CYCLES", 2))
MAX_ITERATIONS = int(os.getenv("MAX_ITERATIONS", 30))
FALLBACK_ATTEMPTS = int(os.getenv("FALLBACK_ATTEMPTS", 1))
SUCCESS_MARKER = os.getenv("SUCCESS_MARKER", "BUILD SUCCESS")

# Manifest merge policy
ALLOWED_DEPENDENCY_GROUPS = _csv(os.getenv("ALLOWED_DEPENDENCY_GROUPS", "org.junit.jupiter"))

# Build tool
BUILD_MODE = os.getenv("BUILD_MODE", "local").lower()
MAVEN_COMMAND = os.getenv("MAVEN_COMMAND", "mvn")
DOCKER_IMAGE = os.getenv("DOCKER_IMAGE", "maven:3.9-eclipse-temurin-17")
BUILD_TIMEOUT_SECONDS = _optional_seconds("BUILD_TIMEOUT_SECONDS", 0)

# Output locations
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE_PREFIX = os.getenv("LOG_FILE_PREFIX", "tdd_agent")
LOG_DIR = os.getenv("LOG_DIR", "logs")
RESULTS_DIR = os.getenv("RESULTS_DIR", "results")

# API run registry
MAX_KEPT_RUNS = int(os.getenv("MAX_KEPT_RUNS", 100))
CORS_ORIGINS = _csv(os.getenv(
    "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8000"
))
