from __future__ import annotations

DISCORD_TOKEN_ENV = "DISCORD_BOT_TOKEN"
DISCORD_GUILD_ID_ENV = "DISCORD_GUILD_ID"
DISCORD_CLIENT_ID_ENV = "DISCORD_CLIENT_ID"
DISCORD_SUBSCRIBED_ROLE_ID_ENV = "DISCORD_SUBSCRIBED_ROLE_ID"

DISCORD_PLAYER_ROLE_ID_ENV = "DISCORD_PLAYER_ROLE_ID"
DISCORD_ROLL_DICE_ROLE_ID_ENV = "DISCORD_ROLL_DICE_ROLE_ID"
DISCORD_STAFF_ROLE_ID_ENV = "DISCORD_STAFF_ROLE_ID"

CHANNEL_CHARACTER_SETUP_ID_ENV = "DISCORD_CHARACTER_SETUP_CHANNEL_ID"
CHANNEL_QUEUE_ID_ENV = "DISCORD_QUEUE_CHANNEL_ID"
CHANNEL_QUEST_BOARD_ID_ENV = "DISCORD_QUEST_BOARD_CHANNEL_ID"
CHANNEL_DAILY_JOB_ID_ENV = "DISCORD_DAILY_JOB_CHANNEL_ID"
CHANNEL_PLAYER_INTROS_ID_ENV = "DISCORD_PLAYER_INTROS_CHANNEL_ID"
CHANNEL_SURVIVAL_ID_ENV = "DISCORD_SURVIVAL_CHANNEL_ID"
CHANNEL_WELCOME_ID_ENV = "DISCORD_WELCOME_CHANNEL_ID"

# Self-service role ids, grouped by the menu they belong to.
PRONOUN_ROLE_ENVS = (
    "DISCORD_GENDER_SHE_HER_ROLE_ID",
    "DISCORD_GENDER_HE_HIM_ROLE_ID",
    "DISCORD_GENDER_SHE_THEM_ROLE_ID",
    "DISCORD_GENDER_HE_THEM_ROLE_ID",
    "DISCORD_GENDER_THEY_THEM_ROLE_ID",
    "DISCORD_GENDER_ASK_ROLE_ID",
)
PM_ROLE_ENVS = (
    "DISCORD_PM_OK_ROLE_ID",
    "DISCORD_PM_ASK_ROLE_ID",
    "DISCORD_PM_NO_ROLE_ID",
)
INTEREST_ROLE_ENVS = (
    "DISCORD_SURVIVALIST_ROLE_ID",
    "DISCORD_CRAFTER_ROLE_ID",
    "DISCORD_QUEST_SEEKER_ROLE_ID",
)
REGION_ROLE_ENVS = (
    "DISCORD_REGION_AFRICA_ROLE_ID",
    "DISCORD_REGION_ASIA_ROLE_ID",
    "DISCORD_REGION_EUROPE_ROLE_ID",
    "DISCORD_REGION_NORTH_AMERICA_ROLE_ID",
    "DISCORD_REGION_OCEANIA_ROLE_ID",
    "DISCORD_REGION_SOUTH_AMERICA_ROLE_ID",
)
SELF_ROLE_ENVS = PRONOUN_ROLE_ENVS + PM_ROLE_ENVS + INTEREST_ROLE_ENVS + REGION_ROLE_ENVS

BACKEND_API_URL_ENV = "BACKEND_API_URL"
BACKEND_API_TOKEN_ENV = "BACKEND_API_TOKEN"
BACKEND_HTTP_TIMEOUT_SECONDS_ENV = "BACKEND_HTTP_TIMEOUT_SECONDS"
BACKEND_API_TOKEN_MIN_LENGTH = 32

CHECKOUT_URL_ENV = "CHECKOUT_URL"
WEBSITE_URL_ENV = "WEBSITE_URL"
WELCOME_IMAGE_URL_ENV = "WELCOME_IMAGE_URL"

GRACE_PERIOD_DAYS_ENV = "GRACE_PERIOD_DAYS"
GRACE_PERIOD_DM_ENABLED_ENV = "GRACE_PERIOD_DM_ENABLED"

STARBOARD_CHANNEL_ID_ENV = "STARBOARD_CHANNEL_ID"
STARBOARD_THRESHOLD_ENV = "STARBOARD_THRESHOLD"

DAILY_SYNC_SCHEDULE_ENV = "DAILY_SYNC_SCHEDULE"
SCHEDULE_TIMEZONE_ENV = "SCHEDULE_TIMEZONE"

WEBHOOK_HOST_ENV = "WEBHOOK_HOST"
WEBHOOK_PORT_ENV = "PORT"

MONGODB_URI_ENV = "MONGODB_URI"
MONGODB_DB_NAME_ENV = "MONGODB_DB_NAME"

DEFAULT_BACKEND_API_URL = "http://localhost:3000"
DEFAULT_CHECKOUT_URL = "https://triboar.guild/checkout/"
DEFAULT_WEBSITE_URL = "https://triboar.guild"
DEFAULT_DAILY_SYNC_SCHEDULE = "59 23 * * *"
