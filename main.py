#!/usr/bin/env python3
"""
Main entry point for the event-shape pipeline.

Supports:
  - Single-job execution (default)
  - Batch job execution via --batch-job-index / --total-batch-jobs
  - Shared run directory via --run-dir  (for multi-job PBS arrays)
  - Merge-only mode via --merge-only --run-dir <path>
  - Post-run plot regeneration via --plots-only --run-dir <path>

Architecture (multi-job):
  Each batch job analyzes its own slice of the events and saves its
  histogram state (batch_N_histograms.json) and stats (batch_N_stats.json).
  The merge job (--merge-only) adds the shards, aggregates the stats and
  writes the ROOT file, table and plots once.
"""

import sys
import os
import logging
import argparse
import yaml

from domain.config import PipelineConfig
from domain.errors import ConfigurationError
from pipeline.executor import PipelineExecutor
from utils.paths import create_timestamped_run_dir, update_config_paths_with_run_dir


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Event-shape analysis pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Single job - analysis and reporting as enabled in config.yaml
  event-shapes

  # Single job with custom config
  event-shapes --config my_config.yaml

  # Batch array job - analyzes its share of the events
  event-shapes --batch-job-index 1 --total-batch-jobs 4 \\
      --run-dir ./output/lep1_shared

  # Merge job - add histogram shards, aggregate stats, write outputs
  event-shapes --merge-only --run-dir ./output/lep1_shared

  # Re-generate plots from an existing run (no processing)
  event-shapes --plots-only --run-dir ./output/lep1_shared

  # Dry-run to validate config
  event-shapes --dry-run
        """
    )

    parser.add_argument(
        "--config", type=str, default="config.yaml",
        help="Path to configuration file (default: config.yaml)"
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Validate configuration without running pipeline"
    )

    # --- Batch job arguments ---
    batch_group = parser.add_argument_group("Batch Job Options")
    batch_group.add_argument(
        "--batch-job-index", type=int, default=None,
        help="This job's index (1-based, matching PBS $PBS_ARRAY_INDEX)"
    )
    batch_group.add_argument(
        "--total-batch-jobs", type=int, default=None,
        help="Total number of batch jobs"
    )
    batch_group.add_argument(
        "--run-dir", type=str, default=None,
        help="Pre-created shared run directory (skips timestamped dir creation)"
    )

    # --- Post-run options ---
    post_group = parser.add_argument_group("Post-Run Options")
    post_group.add_argument(
        "--merge-only", action="store_true",
        help="Merge batch outputs: add histogram shards + aggregate stats + write outputs"
    )
    post_group.add_argument(
        "--plots-only", action="store_true",
        help="Only generate plots from the saved histogram state in --run-dir"
    )

    args = parser.parse_args(argv)

    # Validation
    if args.batch_job_index is not None and args.total_batch_jobs is None:
        parser.error("--total-batch-jobs is required when --batch-job-index is set")
    if args.total_batch_jobs is not None and args.batch_job_index is None:
        parser.error("--batch-job-index is required when --total-batch-jobs is set")
    if (args.plots_only or args.merge_only) and args.run_dir is None:
        parser.error("--run-dir is required when --plots-only or --merge-only is set")
    if args.plots_only and args.merge_only:
        parser.error("--plots-only and --merge-only are mutually exclusive")

    return args


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    logger.info("=" * 60)
    logger.info("Event-Shape Analysis Pipeline")
    logger.info("=" * 60)

    try:
        # ------------------------------------------------------------------
        # PLOTS-ONLY MODE: regenerate plots from existing run output
        # ------------------------------------------------------------------
        if args.plots_only:
            logger.info(f"Plots-only mode: reading data from {args.run_dir}")
            config_dict = load_config(args.config)
            config_dict = update_config_paths_with_run_dir(config_dict, args.run_dir)
            config = PipelineConfig.from_dict(config_dict)

            executor = PipelineExecutor(config)
            executor.generate_plots_from_output(args.run_dir)
            logger.info("Plots generated successfully")
            return 0

        # ------------------------------------------------------------------
        # MERGE-ONLY MODE: add shards + aggregate stats + report
        # ------------------------------------------------------------------
        if args.merge_only:
            logger.info(f"Merge-only mode: merging outputs in {args.run_dir}")
            config_dict = load_config(args.config)
            config_dict = update_config_paths_with_run_dir(config_dict, args.run_dir)
            config = PipelineConfig.from_dict(config_dict)

            executor = PipelineExecutor(config)
            final_context = executor.merge_outputs(args.run_dir)
            if not final_context.is_successful:
                logger.error(f"Merge failed: {final_context.error_message}")
                return 1
            logger.info("Merge completed successfully")
            return 0

        # ------------------------------------------------------------------
        # NORMAL / BATCH PIPELINE MODE
        # ------------------------------------------------------------------
        logger.info(f"Loading configuration from: {args.config}")
        config_dict = load_config(args.config)

        # Inject batch job params from CLI into config (override YAML values)
        if args.batch_job_index is not None:
            config_dict.setdefault("run_metadata", {})
            config_dict["run_metadata"]["batch_job_index"] = args.batch_job_index
            config_dict["run_metadata"]["total_batch_jobs"] = args.total_batch_jobs

            # Reporting runs once, in the merge job
            tasks = dict(config_dict.get("tasks") or {})
            if tasks.get("do_reporting"):
                logger.info("Batch job: reporting deferred to the merge job")
            tasks["do_reporting"] = False
            config_dict["tasks"] = tasks

        # Determine run directory
        if args.run_dir:
            run_dir = args.run_dir
            os.makedirs(run_dir, exist_ok=True)
            logger.info(f"Using shared run directory: {run_dir}")
        else:
            run_metadata = config_dict.get('run_metadata', {})
            run_name = run_metadata.get('run_name', 'pipeline_run')
            base_output = run_metadata.get('base_output_dir', './output')
            run_dir = create_timestamped_run_dir(base_output, run_name)
            logger.info(f"Created timestamped run directory: {run_dir}")

        # Update config paths to use run directory
        config_dict = update_config_paths_with_run_dir(config_dict, run_dir)

        # Create validated config
        config = PipelineConfig.from_dict(config_dict)
        logger.info("Configuration loaded and validated successfully")

        batch_info = ""
        if config.batch_job_index is not None:
            batch_info = f" (batch {config.batch_job_index}/{config.total_batch_jobs})"
        logger.info(f"Output directory: {run_dir}{batch_info}")

        # Building the executor also validates analyzer and histogram settings
        executor = PipelineExecutor(config)

        if args.dry_run:
            logger.info("Dry run mode - configuration is valid, exiting")
            logger.info(f"Enabled tasks: {[k for k, v in vars(config.tasks).items() if v]}")
            logger.info(f"Run directory: {run_dir}")
            return 0

        final_context = executor.run()

        # Save per-batch state for later merging
        if config.batch_job_index is not None and final_context.is_successful:
            executor.save_batch_state(run_dir, config.batch_job_index, final_context)

        if final_context.is_successful:
            logger.info(f"Pipeline completed successfully{batch_info}")
            return 0
        else:
            logger.error(f"Pipeline failed: {final_context.error_message}")
            return 1

    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
