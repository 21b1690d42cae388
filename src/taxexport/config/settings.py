import os
from dotenv import load_dotenv
load_dotenv()
# ---- Blockscout (Etherscan-compatible account API) ----
BLOCKSCOUT_PAGE_SIZE = int(os.environ.get("BLOCKSCOUT_PAGE_SIZE", "10000"))
BLOCKSCOUT_REQUESTS_PER_SEC = float(os.environ.get("BLOCKSCOUT_REQUESTS_PER_SEC", "5.0"))
BLOCKSCOUT_TIMEOUT_SEC = 30
BLOCKSCOUT_MAX_RETRIES = 4
BLOCKSCOUT_BACKOFF_BASE_SEC = 0.5
BLOCKSCOUT_BACKOFF_CAP_SEC = 8.0
# explorer rate limits are metered per second
BLOCKSCOUT_RATE_LIMIT_FLOOR_SEC = 1.0

# ---- Chain directory ----
CHAINSCOUT_URL = os.environ.get(
    "CHAINSCOUT_URL",
    "https://raw.githubusercontent.com/blockscout/chainscout/main/data/chains.json",
)
CHAINSCOUT_TIMEOUT_SEC = 15

DEFAULT_NATIVE_SYMBOL = "ETH"
DEFAULT_NATIVE_DECIMALS = 18
DEFAULT_TOKEN_DECIMALS = 18

# ---- Activity scan ----
SCAN_BATCH_SIZE = 5
SCAN_BATCH_DELAY_SEC = 0.3

# ----- Export ------
EXPORT_OUT_DIR = os.environ.get("TAXEXPORT_OUT_DIR", "out")
LOG_LEVEL = os.environ.get("TAXEXPORT_LOG_LEVEL", "WARNING")

# ----- Assistant tools -----
SEARCH_PAGE_SIZE = 50
STATUS_PREVIEW_ROWS = 30
