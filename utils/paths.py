"""
Path utilities for pipeline.

Handles timestamped directories and path management.
"""

import os
from datetime import datetime

RUN_SUBDIRS = ["histograms", "plots", "logs"]


def create_timestamped_run_dir(base_output_dir: str, run_name: str = None) -> str:
    """
    Create a timestamped directory for the current pipeline run.

    Args:
        base_output_dir: Base output directory (e.g., "./output")
        run_name: Optional run name to include in directory

    Returns:
        Path to the timestamped run directory

    Example:
        create_timestamped_run_dir("./output", "lep1")
        -> "./output/lep1_20261019_211730"
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")

    if run_name:
        dir_name = f"{run_name}_{timestamp}"
    else:
        dir_name = f"run_{timestamp}"

    run_dir = os.path.join(base_output_dir, dir_name)
    os.makedirs(run_dir, exist_ok=True)

    return run_dir


def _set_if_relative(config: dict, key: str, value: str):
    """Only overwrite a path if it's missing or relative (not an absolute override)."""
    if key not in config or not os.path.isabs(config[key]):
        config[key] = value


def update_config_paths_with_run_dir(config_dict: dict, run_dir: str) -> dict:
    """
    Point the output paths of a configuration at the run directory.

    Relative paths are replaced with the matching sub-directory of
    *run_dir*; absolute paths set in the config are left untouched.

    Layout under run_dir:
        histograms/  - ROOT file, JSON state and text table
        plots/       - PNG plots
        logs/        - batch statistics

    Args:
        config_dict: Configuration dictionary
        run_dir: Run directory path

    Returns:
        Updated configuration dictionary
    """
    updated_config = config_dict.copy()

    for d in RUN_SUBDIRS:
        os.makedirs(os.path.join(run_dir, d), exist_ok=True)

    if 'reporting_task_config' in updated_config:
        reporting_config = dict(updated_config['reporting_task_config'] or {})
        _set_if_relative(reporting_config, 'output_dir', os.path.join(run_dir, "histograms"))
        _set_if_relative(reporting_config, 'plots_dir', os.path.join(run_dir, "plots"))
        updated_config['reporting_task_config'] = reporting_config

    return updated_config

