"""Runtime constants shared across config, adapter and pipeline modules."""

# Download defaults
DEFAULT_DOWNLOAD_FOLDER_NAME = ".embeddedrabbitmq"
DEFAULT_DOWNLOAD_CHUNK_SIZE = 64 * 1024

# Timeouts, in seconds
DEFAULT_DOWNLOAD_CONNECT_TIMEOUT = 2.0
DEFAULT_DOWNLOAD_READ_TIMEOUT = 3.0
DEFAULT_CTL_TIMEOUT = 2.0
DEFAULT_SERVER_INIT_TIMEOUT = 3.0
DEFAULT_ERLANG_CHECK_TIMEOUT = 1.0
DEFAULT_STOP_GRACE_TIMEOUT = 5.0
DEFAULT_READINESS_POLL_INTERVAL = 0.5

# Broker node defaults
DEFAULT_NODE_PORT = 5672

# Captured output kept per stream for the long-running broker process
MAX_CAPTURED_OUTPUT_LINES = 2000

# Bundled executables, relative to the installed app folder
SCRIPTS_SUBFOLDER = "sbin"
RABBITMQ_SERVER = "rabbitmq-server"
RABBITMQ_CTL = "rabbitmqctl"
RABBITMQ_PLUGINS = "rabbitmq-plugins"
ERLANG_EXECUTABLE = "erl"

# Artifact layout
EXTRACTION_FOLDER_PREFIX = "rabbitmq_server-"
ARTIFACT_FILE_PREFIX = "rabbitmq-server-"

# Official download locations
GITHUB_RELEASES_URL = (
    "https://github.com/rabbitmq/rabbitmq-server/releases/download/{tag}/{file_name}"
)
RABBITMQ_RELEASES_URL = (
    "https://www.rabbitmq.com/releases/rabbitmq-server/v{version}/{file_name}"
)

# Release series from which GitHub tags use "v3.7.18" instead of "rabbitmq_v3_6_5",
# the standalone mac artifact is gone, and rabbitmq.com stopped hosting releases.
MODERN_RELEASE_SERIES = (3, 7)

# Known releases, oldest first
PREDEFINED_VERSIONS = (
    "3.6.5",
    "3.6.6",
    "3.6.9",
    "3.6.16",
    "3.7.7",
    "3.7.18",
    "3.7.28",
    "3.8.9",
    "3.8.35",
    "3.9.29",
    "3.10.25",
    "3.11.28",
    "3.12.14",
    "3.13.7",
)

# Minimum Erlang/OTP major release required per broker release series
MINIMUM_ERLANG_RELEASES = {
    (3, 7): 19,
    (3, 8): 21,
    (3, 9): 23,
    (3, 10): 23,
    (3, 11): 25,
    (3, 12): 25,
    (3, 13): 26,
}
