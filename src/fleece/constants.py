"""Protocol literals and defaults shared across fleece."""

DEFAULT_URL = "ws://localhost:3000"
URL_SCHEME_PREFIX = "ws://"

# Socket.IO event names used by the Dalai server.
REQUEST_EVENT = "request"
RESULT_EVENT = "result"

STOP_PROMPT = "/stop"

# End-of-generation sentinels owned by the server; compare literally.
SOFT_END = "\n\n<end>"
HARD_END = "\\end{code}"

# The server echoes its sampling parameters on startup.
SERVER_DIAGNOSTIC_MARKER = "repeat_penalty = "

# Characters already typed ahead of detecting the hard end inside the buffer.
DEFAULT_MARKER_STRIP_WIDTH = len(HARD_END) - 1

DEFAULT_TERMINAL_NAME = "fleece-dalai-terminal"
DEFAULT_START_COMMAND = "npx dalai serve"
INTERRUPT_TEXT = "\x03"
DEFAULT_STARTUP_DELAY = 1.0

# Connect-phase retries while the server boots; none after a disconnect.
DEFAULT_CONNECT_WINDOW = 30.0
RETRY_DELAY = 1.0
MAX_RETRY_DELAY = 5.0

DEFAULT_MODEL = "llama.7b"

DONE_MESSAGE = "Done!"
THINKING_MESSAGE = "Fleece is thinking..."
STARTING_MESSAGE = "Starting Dalai Server"
UNREACHABLE_MESSAGE = "Can't reach Dalai server. Restart local server?"
