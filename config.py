# config.py
import os

# ======= Progress reporting cadence (attempted placements) =======
LOG_EVERY_SOLVE = int(os.getenv("CAL_LOG_EVERY_SOLVE", "25000"))
LOG_EVERY_COUNT = int(os.getenv("CAL_LOG_EVERY_COUNT", "50000"))

# ======= Solution storage caps =======
# The engine keeps the first N unique solutions of a count query; the HTTP
# host asks for a smaller sample by default so the payload stays readable.
DEFAULT_STORE_LIMIT = int(os.getenv("CAL_DEFAULT_STORE_LIMIT", "500"))
UI_STORE_LIMIT      = int(os.getenv("CAL_UI_STORE_LIMIT", "100"))

# ======= Host / worker =======
MAX_LOG_LINES = int(os.getenv("CAL_MAX_LOG_LINES", "500"))
QUERY_TIMEOUT = float(os.getenv("CAL_QUERY_TIMEOUT", "3600"))

# ======= CP-SAT backend =======
CP_SAT_MAX_SECONDS = float(os.getenv("CAL_CP_SAT_MAX_SECONDS", "60"))
WORKERS            = int(os.getenv("CAL_WORKERS", "1"))
MAX_MEMORY_MB      = int(os.getenv("CAL_MAX_MEMORY_MB", "2048"))

# ======= Output names =======
ATTEMPT_LOG = os.getenv("CAL_ATTEMPT_LOG", os.path.join("logs", "solver_runs.log"))

class CFG:
    LOG_EVERY_SOLVE = LOG_EVERY_SOLVE
    LOG_EVERY_COUNT = LOG_EVERY_COUNT

    DEFAULT_STORE_LIMIT = DEFAULT_STORE_LIMIT
    UI_STORE_LIMIT      = UI_STORE_LIMIT

    MAX_LOG_LINES = MAX_LOG_LINES
    QUERY_TIMEOUT = QUERY_TIMEOUT

    CP_SAT_MAX_SECONDS = CP_SAT_MAX_SECONDS
    WORKERS            = WORKERS
    MAX_MEMORY_MB      = MAX_MEMORY_MB

    ATTEMPT_LOG = ATTEMPT_LOG

__all__ = ["CFG"]
