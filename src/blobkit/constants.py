"""Constants for blobkit."""

# Environment variables
CONFIG_ENV = "BLOBKIT_CONFIG"
WORK_DIR_ENV = "BLOBKIT_WORK_DIR"

# Application name used for the platform cache directory
APP_NAME = "blobkit"

# Chunk size for streaming copies between blobs (1 MiB)
BUFSIZE = 1024 * 1024

# Default permission applied by Blob.open when neither handle nor driver sets one
DEFAULT_PERM = 0o644

# Lock directory inside a driver's work_dir
LOCK_DIR = ".locks"

# Seconds to wait for another process localizing the same cache file
LOCK_TIMEOUT = 300

# Version
BLOBKIT_VERSION = "0.1.0"
