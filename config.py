"""
Configuration settings for the Snowflake ID generator
"""

import os
from typing import Dict, Any

from dotenv import load_dotenv, find_dotenv

load_dotenv(find_dotenv(usecwd=True))

# Bit layout - must be identical on every generator in a deployment
EPOCH = 1420041600000  # Reference instant in ms (2015-01-01 00:00 UTC+8)
WORKER_ID_BITS = 4
DATACENTER_ID_BITS = 4
SEQUENCE_BITS = 14

# Identity of this node, allocated externally (must be unique per running generator)
WORKER_ID = 0
DATACENTER_ID = 0

# Logging settings
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Benchmark settings
BENCHMARK_THREADS = 1000
BENCHMARK_IDS_PER_THREAD = 5000
BENCHMARK_ROUNDS = 3

ENV_PREFIX = "SNOWFLAKE_"


# Override settings with environment variables
def get_env_settings() -> Dict[str, Any]:
    """Get settings from environment variables"""
    env_settings = {}

    for key, value in globals().items():
        if key.isupper() and key != "ENV_PREFIX":
            env_value = os.environ.get(f"{ENV_PREFIX}{key}")
            if env_value is not None:
                # Convert to the type of the default value
                if isinstance(value, int):
                    env_settings[key] = int(env_value)
                else:
                    env_settings[key] = env_value

    return env_settings


# Update settings with environment variables
globals().update(get_env_settings())
