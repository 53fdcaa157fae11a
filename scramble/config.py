"""Configuration constants for the scramble engine."""

# Hints
MAX_HINTS_PER_ROUND = 3
HINT_LEVEL_PENALTIES = {1: 10, 2: 20, 3: 30}
# Cumulative penalty by number of hints used (10, 10+20, 10+20+30)
HINT_PENALTY_SCHEDULE = {0: 0, 1: 10, 2: 30, 3: 60}

# Time bonus tiers: (elapsed seconds strictly below, bonus)
TIME_BONUS_TIERS = [(30, 50), (60, 30), (90, 15)]

# Accuracy bonus tiers: (accuracy at least, bonus)
ACCURACY_BONUS_TIERS = [(1.0, 100), (0.95, 50), (0.90, 25)]

# Grammar bonus tiers for sentence rounds: (grammar score at least, bonus)
GRAMMAR_BONUS_TIERS = [(95, 50), (85, 25), (75, 10)]

# Grammar scoring for sentence rounds
GRAMMAR_FULL_SCORE = 100
EXTRA_WORD_PENALTY = 5
MISSING_WORD_PENALTY = 10
WORD_ORDER_PENALTY = 20

# Scrambling
SCRAMBLE_MAX_ATTEMPTS = 3

# Round lifecycle
SESSION_TIMEOUT_MINUTES = 30
SWEEP_INTERVAL_SECONDS = 5 * 60

# Leaderboard
RANK_RECOMPUTE_INTERVAL_SECONDS = 24 * 60 * 60
TOP_TEN = 10
DEFAULT_TOP_N = 10

# Question history
EXCLUSION_SIZE = 10           # Recently seen questions excluded from selection
NO_REPEAT_SIZE = 500          # Bound used when no-repeat mode is on

# Content catalog
CONTENT_CACHE_TTL_SECONDS = 5 * 60
IDIOM_CATALOG_FILE = 'idioms.json'
SENTENCE_CATALOG_FILE = 'sentences.json'
