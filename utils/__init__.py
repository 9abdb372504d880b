"""
Utility modules for pipeline.
"""

from .paths import (
    create_timestamped_run_dir,
    update_config_paths_with_run_dir,
)
from .batching import get_batch_range, get_batch_slice

__all__ = [
    "create_timestamped_run_dir",
    "update_config_paths_with_run_dir",
    "get_batch_range",
    "get_batch_slice",
]
