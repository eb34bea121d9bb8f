# config/settings.py
import os

# Stream Buffer Configuration
DEFAULT_MAX_BUFFER_CHARS = 3000  # Rolling buffer cap per message (oldest text is dropped)
DEFAULT_TOKEN_PROCESS_THRESHOLD = 60  # Minimum new characters before the buffer is rescanned
DEFAULT_REPEAT_SUPPRESS_MS = 800  # Drop a repeated winner inside this window
MAX_TRACKED_MESSAGES = 24  # Message states kept before LRU eviction

# Cooldown Configuration (milliseconds)
DEFAULT_GLOBAL_COOLDOWN_MS = 1200  # Minimum gap between any two switches
DEFAULT_PER_TRIGGER_COOLDOWN_MS = 250  # Minimum gap between switches to the same folder
DEFAULT_FAILED_TRIGGER_COOLDOWN_MS = 10000  # Back-off after a failed switch to a folder

# Scoring Configuration
DEFAULT_PRIORITY_WEIGHTS = {
    "speaker": 5,
    "attribution": 4,
    "action": 3,
    "pronoun": 2,
    "vocative": 2,
    "possessive": 1,
    "name": 0,
}
PRIORITY_MULTIPLIER = 100  # Converts a priority rank into score points
ACTIVE_PRIORITY_THRESHOLD = 3  # Priorities at or above this are "active" signals
DEFAULT_DETECTION_BIAS = 0  # Global nudge for active signals (may be negative)
DEFAULT_ROSTER_BONUS = 150  # Bonus for characters already in the scene roster
DEFAULT_ROSTER_PRIORITY_DROPOFF = 0.5  # Attenuation of the roster bonus per active tier step
DEFAULT_DISTANCE_PENALTY_WEIGHT = 1.0  # Score lost per character away from the buffer end

# Scene Roster Configuration
DEFAULT_SCENE_ROSTER_ENABLED = True
DEFAULT_SCENE_ROSTER_TTL = 5  # Messages a roster survives without fresh detections
TOP_CHARACTERS_LIMIT = 4  # Upper bound for getTopCharacters queries

# Detection Toggles
DEFAULT_DETECTION_TOGGLES = {
    "speaker": True,
    "attribution": True,
    "action": True,
    "pronoun": True,
    "vocative": True,
    "possessive": True,
    "name": True,
}
DEFAULT_PRONOUN_REQUIRES_SUBJECT = True  # Drop pronouns that cannot be resolved to a subject

# Outfit Configuration
DEFAULT_OUTFITS_ENABLED = True  # Resolve outfit variants per character
TRIGGER_SUGGESTION_CUTOFF = 75  # Minimum fuzzy ratio for "did you mean" trigger suggestions

# Profile Schema Configuration
SETTINGS_SCHEMA_VERSION = 4
DEFAULT_PROFILE_NAME = "Default"

# Pattern Compilation
PATTERN_FINGERPRINT_LENGTH = 16  # Hex characters kept from the pattern fingerprint hash
MAX_ATTRIBUTION_GAP_WORDS = 2  # Words allowed between a name and its verb ("Alice quietly said")

# Tester Configuration
SIMULATION_CHAR_DELAY_MS = 20  # Simulated clock advance per streamed character

# Output Paths
LOG_DIR = os.getenv("COSTUME_SWITCH_LOG_DIR", "logs")

# Logging Configuration
LOG_LEVEL = os.getenv("COSTUME_SWITCH_LOG_LEVEL", "INFO")
CONSOLE_LOG_LEVEL = os.getenv("COSTUME_SWITCH_CONSOLE_LOG_LEVEL", "INFO")  # Level for console output
FILE_LOG_LEVEL = os.getenv("COSTUME_SWITCH_FILE_LOG_LEVEL", "DEBUG")  # Level for file output (more detailed)

# Metrics Configuration
METRICS_ENABLED = os.getenv("COSTUME_SWITCH_METRICS_ENABLED", "true").lower() == "true"
METRICS_NAMESPACE = "costume_switch"
SCAN_DURATION_BUCKETS = [0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1]
