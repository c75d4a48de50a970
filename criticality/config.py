"""
Configuration for criticality analysis
"""

import os
from pydantic_settings import BaseSettings


class CriticalityConfig(BaseSettings):
    """Analysis configuration loaded from environment"""

    # Unit whose accumulated fragment is the whole-program graph.
    # Empty means: pick the single top-level unit (or fold all of them).
    root_unit: str = os.getenv("DEPGRAPH_ROOT_PKG", "")

    # PageRank
    damping: float = float(os.getenv("PAGERANK_DAMPING", "0.85"))
    tolerance: float = float(os.getenv("PAGERANK_TOLERANCE", "0.0001"))
    max_iterations: int = int(os.getenv("PAGERANK_MAX_ITER", "100"))

    # Scheduler: units of one dependency generation processed at once
    concurrency: int = int(os.getenv("MAX_CONCURRENT_UNITS", "1"))

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_format: str = os.getenv("LOG_FORMAT", "console")  # "console" or "json"
    log_output: str = os.getenv("LOG_OUTPUT", "")  # Extra log file, stderr only if empty

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = 'ignore'
