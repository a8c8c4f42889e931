"""
Main entrypoint: autonomous trust agent (24/7).

Subscribes to rating-contract events, debounces them into evaluation jobs
and runs each job through the evaluation pipeline. Stops cleanly on
SIGINT/SIGTERM.

Env: VERIAI_DB_PATH, CHAIN_EVENTS_WS_URL, CHAIN_GATEWAY_URL, HF_API_URL,
BACKEND_URL, REDTEAM_URL, OPENAI_API_KEY, FRONTEND_NOTIFY_URL, etc.

Manual one-off evaluation: python -m backend_veriai.tools.run_evaluation <subject>
"""

import asyncio
import sys

# Configure structured JSON logging before other imports that may log
from backend_veriai.veriai_logging import get_logger

logger = get_logger("main")


def main() -> int:
    from backend_veriai.agent_worker.runtime import TrustAgent
    from backend_veriai.config.env import print_veriai_startup
    from backend_veriai.config.settings import get_settings

    try:
        settings = get_settings()
    except ValueError as e:
        logger.error("main_config_error", error=str(e))
        return 1

    print_veriai_startup("main")
    agent = TrustAgent(settings)
    try:
        asyncio.run(agent.run_forever())
    except KeyboardInterrupt:
        logger.info("main_keyboard_interrupt")
    except Exception as e:
        logger.exception("main_fatal", error=str(e))
        return 1
    logger.info("main_exit")
    return 0


if __name__ == "__main__":
    sys.exit(main())
