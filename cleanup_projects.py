#!/usr/bin/env python3
"""
GCP Project Cleanup
Deletes VM instances, unattached disks, unused static IPs and automation
service accounts across a fixed list of projects. Storage buckets are only
reported unless bucket deletion is explicitly allowed.

WARNING: with --delete this script permanently removes resources!
Runs as a dry run by default. Meant to be run by hand or from cron via cleanup.sh.
"""

import argparse
import logging
from typing import Any, Dict, List

import pandas as pd

from config import RunConfig, build_run_config, setup_logging
from gcp_provider import GcpProvider
from project_cleanup import cleanup_project

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Delete unused GCP resources across projects")
    parser.add_argument('--project', dest='projects', action='append',
                        help='Project ID to clean (repeatable, overrides config)')
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument('--delete', action='store_true',
                      help='Actually delete resources (default is dry-run)')
    mode.add_argument('--dry-run', action='store_true',
                      help='Only report what would be deleted')
    parser.add_argument('--zone', dest='zones', action='append',
                        help='Only clean this zone (repeatable)')
    parser.add_argument('--region', dest='regions', action='append',
                        help='Only clean this region (repeatable)')
    parser.add_argument('--sa-prefix', default=None,
                        help='Service account email prefix to delete')
    parser.add_argument('--allow-bucket-deletion', action='store_true',
                        help='Also empty and delete storage buckets')
    parser.add_argument('--max-workers', type=int, default=None,
                        help='Maximum parallel deletions per resource type')
    parser.add_argument('--operation-timeout', type=float, default=None,
                        help='Seconds to wait for each delete operation')
    parser.add_argument('--log-file', default=None,
                        help='Append log output to this file')
    return parser.parse_args(argv)


def run_cleanup(run_config: RunConfig, provider=None) -> List[Dict[str, Any]]:
    """Clean every configured project in order, one at a time."""
    if provider is None:
        provider = GcpProvider(operation_timeout=run_config.operation_timeout)

    logger.info(f"Starting GCP cleanup script (Dry Run: {run_config.dry_run})")
    logger.info(f"Projects to clean: {list(run_config.project_ids)}")

    if not run_config.project_ids:
        logger.error("No projects configured - nothing to clean")
        return []

    all_results = []
    for project_id in run_config.project_ids:
        logger.info(f"========== Processing Project: {project_id} ==========")
        try:
            project_results = cleanup_project(provider, run_config, project_id)
        except Exception as e:
            logger.error(f"Critical error cleaning project {project_id}: {type(e).__name__}: {e}")
            project_results = {}
        all_results.append({'project_id': project_id, 'results': project_results})

    logger.info("========== Cleanup Complete ==========")
    return all_results


def build_summary(all_results: List[Dict[str, Any]]) -> pd.DataFrame:
    """One row per project and resource type."""
    rows = []
    for project in all_results:
        for resource_type, result in project['results'].items():
            rows.append({
                'Project ID': project['project_id'],
                'Resource Type': resource_type,
                'Found': result['found'],
                'Deleted': result['deleted'],
                'Failed': result['failed'],
                'Status': result['status']
            })
    return pd.DataFrame(rows, columns=['Project ID', 'Resource Type', 'Found', 'Deleted', 'Failed', 'Status'])


def print_summary(all_results: List[Dict[str, Any]], dry_run: bool):
    summary_df = build_summary(all_results)
    if summary_df.empty:
        return

    print(f"\n📊 CLEANUP SUMMARY ({'DRY RUN' if dry_run else 'DELETE'})")
    print("=" * 80)
    print(summary_df.to_string(index=False))
    print("=" * 80)


def start_logging(log_file):
    """Set up logging, falling back to stdout only if the log file cannot be opened."""
    try:
        setup_logging(log_file)
    except OSError as e:
        setup_logging(None)
        logger.error(f"Cannot open log file {log_file}, logging to stdout only: {e}")


def main(argv=None, provider=None):
    args = parse_args(argv)
    try:
        run_config = build_run_config(args)
    except ValueError as e:
        start_logging(args.log_file)
        logger.error(f"Invalid configuration: {e}")
        return

    start_logging(run_config.log_file)
    all_results = run_cleanup(run_config, provider)
    print_summary(all_results, run_config.dry_run)


if __name__ == "__main__":
    main()
