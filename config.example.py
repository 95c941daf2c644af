# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Keep the API key in .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "PULSE_APP_NAME": "App display name (default: pulse).",
    "PULSE_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "PULSE_CONSOLE_ENABLED": "Run the interactive console (true/false, default: true).",
    "PULSE_API_ENABLED": "Serve GET/POST /api/tasks over HTTP (true/false, default: false).",
    "PULSE_API_HOST": "HTTP bind host (default: 127.0.0.1).",
    "PULSE_API_PORT": "HTTP port (default: $PORT or 3000).",
    # LLM (any OpenAI-compatible endpoint)
    "PULSE_LLM_API_KEY": "API key; GEMINI_API_KEY / API_KEY are accepted too. Unset => LLM disabled.",
    "PULSE_LLM_BASE_URL": "Endpoint (default: Gemini's OpenAI-compatible URL).",
    "PULSE_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "PULSE_LLM_CONNECT_TIMEOUT_SECONDS": "Connect timeout (default: 5).",
    "PULSE_LLM_READ_TIMEOUT_SECONDS": "Read timeout (default: 60).",
    # Paths (gitignored)
    "PULSE_DATA_DIR": "Local data directory (default: .local/pulse). Holds pulse.log.",
    "PULSE_TASKS_PATH": "Task collection JSON file (default: <data_dir>/tasks.json).",
    # Scheduler tuning
    "PULSE_TICK_SECONDS": "Scheduler tick period (default: 1.0).",
    "PULSE_SAVE_DEBOUNCE_SECONDS": "Quiet period before a save is written (default: 0.5).",
    "PULSE_ACTION_TIMEOUT_SECONDS": "Per-action timeout; 0 disables it (default: 60).",
}
