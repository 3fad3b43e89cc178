"""
Configuration constants for netcp.
"""

# --- Networking ---
DEFAULT_PORT = 5000          # Used when an address omits the port
CONNECT_TIMEOUT = 10         # Seconds allowed for the TCP connect itself
IDLE_TIMEOUT_MS = 800        # Max gap between byte-moving I/O attempts
CHUNK_SIZE = 512             # Chunk size (bytes) for file payloads

# --- Protocol ---
# Every token is compared byte for byte, so widths matter: the agreement
# tokens are 8 bytes, the markers 4.
CALLSIGN = "netcp v0.1"
MSG_AGREE = b"AGREE   "
MSG_DISAGREE = b"DISAGREE"
MSG_FILE = b"FILE"
MSG_END = b"END "

# Upper bound on a string field (file names). A peer announcing a larger
# length is treated as speaking a different protocol.
MAX_STRING_LENGTH = 64 * 1024

# --- Logging ---
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
