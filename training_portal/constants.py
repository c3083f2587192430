APP_NAME = "Training Portal"

DATA_DIR = "data"
DB_FILE_NAME = "training_portal.db"
SESSION_FILE_NAME = "session.token"
LOG_DIR = "logs"
AUDIT_LOG_FILE_NAME = "audit.log"

TABLE_SCHEMA_VERSION = "schema_version"
SCHEMA_VERSION = "1.0.0"

# Relations
REL_USER_PROFILES = "user_profiles"
REL_QUIZ_ATTEMPTS = "quiz_attempts"
REL_LEADERBOARD_EARNINGS = "leaderboard_earnings"

# Roles
ROLE_TRAINEE = "trainee"
ROLE_ADMIN = "admin"
ROLES = (ROLE_TRAINEE, ROLE_ADMIN)

# Seconds
SESSION_RESTORE_TIMEOUT = 8.0
PROFILE_FETCH_TIMEOUT = 3.0
SESSION_TTL_SECONDS = 60 * 60

QUIZ_PASS_THRESHOLD = 75
MIN_PASSWORD_LENGTH = 6
