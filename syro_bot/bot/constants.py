"""
Command system constants: categories, default grants, cooldown policies
and user-facing messages.
"""

# Wildcard role granting a category to every member
EVERYONE_ROLE = "@everyone"

# Default categories (key -> display metadata)
CATEGORIES = {
    "admin": {
        "name": "Administration",
        "description": "Server administration commands",
        "icon": "⚙️",
        "default_cooldown": 10000,
    },
    "moderation": {
        "name": "Moderation",
        "description": "User moderation commands",
        "icon": "🛡️",
        "default_cooldown": 5000,
    },
    "utility": {
        "name": "Utility",
        "description": "Utility and helper commands",
        "icon": "🔧",
        "default_cooldown": 3000,
    },
    "info": {
        "name": "Information",
        "description": "Information and status commands",
        "icon": "ℹ️",
        "default_cooldown": 2000,
    },
    "fun": {
        "name": "Fun",
        "description": "Fun and entertainment commands",
        "icon": "🎮",
        "default_cooldown": 5000,
    },
    "economy": {
        "name": "Economy",
        "description": "Economy and currency commands",
        "icon": "💰",
        "default_cooldown": 10000,
    },
    "music": {
        "name": "Music",
        "description": "Music playback commands",
        "icon": "🎵",
        "default_cooldown": 3000,
    },
}

# Category -> role names allowed by default
DEFAULT_CATEGORY_ROLES = {
    "admin": {
        "roles": ["Administrator"],
        "description": "Administrative commands requiring high-level permissions",
    },
    "moderation": {
        "roles": ["Moderator", "Administrator"],
        "description": "Moderation commands for server management",
    },
    "utility": {
        "roles": [EVERYONE_ROLE],
        "description": "Utility commands available to all users",
    },
    "info": {
        "roles": [EVERYONE_ROLE],
        "description": "Information commands available to all users",
    },
}

# Commands whose successful use opens a window for everyone (ms)
GLOBAL_COOLDOWNS = {
    "nuke": 60000,
    "purge": 30000,
    "ban": 15000,
    "kick": 10000,
    "mute": 5000,
    "warn": 3000,
}

MESSAGES = {
    "no_permission": "❌ You do not have permission to use this command.",
    "cooldown": "⏰ Please wait {time} seconds before using this command again.",
    "global_cooldown": "⏰ This command is on a global cooldown. Please wait {time} seconds.",
    "execution_error": "❌ An error occurred while executing the command.",
    "timeout": "⏰ Command execution timed out. Please try again.",
    "permission_error": "🚫 You do not have permission to use this command.",
    "not_found": "🔍 The requested resource was not found.",
    "invalid_args": "❌ Invalid arguments provided.",
    "retry_exhausted": "❌ Sorry, the command failed after retrying. Please try again later.",
}
