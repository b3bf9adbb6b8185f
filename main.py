import os
import uvicorn

from memory_ai.api import app
from memory_ai.config import LOG_LEVEL
from memory_ai.logging_setup import configure_logging

if __name__ == "__main__":
    configure_logging(LOG_LEVEL)
    port = int(os.getenv("PORT", "8081"))
    uvicorn.run(app, host="0.0.0.0", port=port, log_level=LOG_LEVEL)
