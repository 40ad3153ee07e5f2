"""Test package for bridge unit and loopback tests."""

import logging

logging.getLogger("asyncio").setLevel(logging.ERROR)
