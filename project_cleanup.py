"""
Per-project cleanup sequencing.

VM instances are deleted first and fully waited for, so disks and IPs are
not judged unattached while their VM is still going away. Disks, static IPs
and service accounts are then cleaned in parallel. Buckets are only touched
when bucket deletion is explicitly allowed.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict

from config import RunConfig
from cleaners import (
    delete_buckets,
    delete_disks,
    delete_service_accounts,
    delete_vm_instances,
    release_static_ips,
)

logger = logging.getLogger(__name__)

# Cleaners that run in parallel once VM deletion is done
PARALLEL_CLEANERS = [
    ('disks', delete_disks, 'deleting disks'),
    ('static_ips', release_static_ips, 'releasing static IPs'),
    ('service_accounts', delete_service_accounts, 'deleting service accounts'),
]


def _failed_result(resource_type: str, project_id: str, error: Exception) -> Dict[str, Any]:
    return {
        'resource_type': resource_type,
        'project_id': project_id,
        'status': 'error',
        'found': 0,
        'deleted': 0,
        'failed': 0,
        'error': str(error),
        'items': []
    }


def cleanup_project(provider, run_config: RunConfig, project_id: str) -> Dict[str, Dict[str, Any]]:
    """Clean one project and return the cleaner results keyed by resource type."""
    results = {}

    try:
        results['vm_instances'] = delete_vm_instances(provider, run_config, project_id)
    except Exception as e:
        logger.error(f"Error deleting VM instances in {project_id}: {type(e).__name__}: {e}")
        results['vm_instances'] = _failed_result('vm_instances', project_id, e)

    with ThreadPoolExecutor(max_workers=len(PARALLEL_CLEANERS)) as executor:
        future_to_cleaner = {
            executor.submit(cleaner, provider, run_config, project_id): (resource_type, what)
            for resource_type, cleaner, what in PARALLEL_CLEANERS
        }

        for future in as_completed(future_to_cleaner):
            resource_type, what = future_to_cleaner[future]
            try:
                results[resource_type] = future.result()
            except Exception as e:
                logger.error(f"Error {what} in {project_id}: {type(e).__name__}: {e}")
                results[resource_type] = _failed_result(resource_type, project_id, e)

    if run_config.allow_bucket_deletion:
        try:
            results['buckets'] = delete_buckets(provider, run_config, project_id)
        except Exception as e:
            logger.error(f"Error deleting buckets in {project_id}: {type(e).__name__}: {e}")
            results['buckets'] = _failed_result('buckets', project_id, e)
    else:
        logger.warning(f"[{project_id}] Note: Storage buckets must be deleted manually via GCP Console")

    return results
