"""
Constants for update source endpoints, sidecar files and defaults
"""

# Release feed (GitHub)
GITHUB_API = "https://api.github.com"
GITHUB_RELEASES_URL = f"{GITHUB_API}/repos/{{repo}}/releases"
# Direct asset links, e.g. https://github.com/owner/repo/releases/download/v1.2/Mod.zip
GITHUB_DOWNLOAD_PATTERN = r"https://github\.com/([^/]+/[^/]+)/releases/download/.+/(.+)"

# Content site (GameBanana)
GAMEBANANA_API = "https://gamebanana.com/apiv11"
GAMEBANANA_ITEM_URL = f"{GAMEBANANA_API}/{{item_type}}/{{item_id}}/ProfilePage"

# Sidecar files kept in each mod folder
MANIFEST_FILE = "mod.manifest"
VERSION_FILE = "mod.version"
MOD_INI_FILE = "mod.ini"
SIDECAR_FILES = (MANIFEST_FILE, VERSION_FILE)

# Mods live under <game root>/<MODS_DIR>/<mod id>
MODS_DIR = "mods"

# Default values
DEFAULT_TIMEOUT = 10
DEFAULT_RETRIES = 3
RETRY_BACKOFF = 1.0

# File hashing
HASH_ALGORITHM = "sha256"
CHUNK_READ_SIZE = 64 * 1024

# Package version and user agent
VERSION = "0.1.0"
USER_AGENT = f"mod-updater/{VERSION} (Python)"

# Config
CONFIG_DIR_NAME = "mod_updater"
CONFIG_FILE_NAME = "config.json"
GITHUB_TOKEN_ENV = "MOD_UPDATER_GITHUB_TOKEN"
