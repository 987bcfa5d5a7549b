"""
Logging setup.
"""

import logging

from clearledger.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = None) -> None:
    """Configure the root logger once, at application start-up."""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
    # litellm is chatty at INFO
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
