"""
Per-resource-type cleaners.

Each cleaner lists one resource type in a project, skips anything still in
use, logs what it found and, unless the run is a dry run, deletes the rest.
Cleaners never raise: every failure is logged and recorded in the returned
result dict.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.api_core import exceptions

from config import RunConfig
from gcp_provider import OperationWaitError
from resource_utils import (
    is_address_in_use,
    is_automation_service_account,
    is_disk_in_use,
    location_allowed,
)

logger = logging.getLogger(__name__)


def _new_result(resource_type: str, project_id: str, run_config: RunConfig) -> Dict[str, Any]:
    return {
        'resource_type': resource_type,
        'project_id': project_id,
        'status': 'dry_run' if run_config.dry_run else 'success',
        'found': 0,
        'deleted': 0,
        'failed': 0,
        'error': None,
        'items': []
    }


def _item_result(name: str, location: Optional[str], status: str,
                 error: Optional[Exception] = None) -> Dict[str, Any]:
    return {
        'name': name,
        'location': location,
        'status': status,
        'error': str(error) if error else None,
        'error_type': type(error).__name__ if error else None
    }


def _record(result: Dict[str, Any], item: Dict[str, Any]):
    result['items'].append(item)
    if item['status'] == 'deleted':
        result['deleted'] += 1
    else:
        result['failed'] += 1
        result['status'] = 'partial'


def _enumeration_failed(result: Dict[str, Any], what: str, error: Exception,
                        role_hint: str) -> Dict[str, Any]:
    project_id = result['project_id']
    logger.error(f"Error {what} in {project_id}: {type(error).__name__}: {error}")
    if isinstance(error, (exceptions.PermissionDenied, exceptions.Forbidden)):
        logger.warning(f"Make sure you have '{role_hint}' role or higher for {project_id}")
    result['status'] = 'error'
    result['error'] = str(error)
    return result


def _delete_item(delete_func: Callable[[], Any], name: str, location: Optional[str],
                 action: str, wait_action: str, done_message: str) -> Dict[str, Any]:
    """Run one blocking delete call and turn the outcome into an item result."""
    try:
        delete_func()
    except OperationWaitError as e:
        logger.error(f"  ERROR waiting for {wait_action} of {name}: {e.cause}")
        return _item_result(name, location, 'wait_failed', e.cause)
    except exceptions.NotFound as e:
        logger.error(f"  ERROR {action} {name}: not found (already deleted?): {e}")
        return _item_result(name, location, 'submit_failed', e)
    except Exception as e:
        logger.error(f"  ERROR {action} {name}: {type(e).__name__}: {e}")
        return _item_result(name, location, 'submit_failed', e)

    logger.info(f"  ✓ {done_message}: {name}")
    return _item_result(name, location, 'deleted')


def _delete_concurrently(jobs: List[Tuple[str, Optional[str], Callable[[], Dict[str, Any]]]],
                         max_workers: int) -> List[Dict[str, Any]]:
    """Run delete jobs in a thread pool and wait for all of them."""
    results = []
    with ThreadPoolExecutor(max_workers=min(len(jobs), max_workers)) as executor:
        future_to_item = {
            executor.submit(job): (name, location)
            for name, location, job in jobs
        }

        for future in as_completed(future_to_item):
            name, location = future_to_item[future]
            try:
                results.append(future.result())
            except Exception as e:
                logger.error(f"  ERROR in delete task for {name}: {type(e).__name__}: {e}")
                results.append(_item_result(name, location, 'submit_failed', e))
    return results


def delete_vm_instances(provider, run_config: RunConfig, project_id: str) -> Dict[str, Any]:
    """Delete every VM instance in the project, all in parallel."""
    logger.info(f"[{project_id}] Checking VM instances...")
    result = _new_result('vm_instances', project_id, run_config)

    try:
        instances = provider.list_instances(project_id)
    except Exception as e:
        return _enumeration_failed(result, 'listing VM instances', e, 'Compute Instance Admin')

    candidates = []
    for instance in instances:
        if not location_allowed(instance['zone'], run_config.allowed_zones):
            logger.debug(f"  Skipping VM Instance {instance['name']} (zone {instance['zone']} not selected)")
            continue
        candidates.append(instance)
        logger.info(f"  Found VM Instance: {instance['name']} "
                    f"(zone: {instance['zone']}, status: {instance['status']})")

    result['found'] = len(candidates)

    if not candidates:
        logger.info(f"[{project_id}] No VM instances found")
        return result

    if run_config.dry_run:
        logger.info(f"[{project_id}] Would delete {len(candidates)} VM instances")
        return result

    logger.info(f"[{project_id}] Deleting {len(candidates)} VM instances in parallel...")
    jobs = []
    for instance in candidates:
        job = partial(
            _delete_item,
            partial(provider.delete_instance, project_id, instance['zone'], instance['name']),
            instance['name'],
            instance['zone'],
            'deleting instance',
            'deletion',
            'Deleted VM instance'
        )
        jobs.append((instance['name'], instance['zone'], job))

    for item in _delete_concurrently(jobs, run_config.max_delete_workers):
        _record(result, item)

    logger.info(f"[{project_id}] All VM deletions complete")
    return result


def delete_disks(provider, run_config: RunConfig, project_id: str) -> Dict[str, Any]:
    """Delete unattached disks one at a time."""
    logger.info(f"[{project_id}] Checking disks...")
    result = _new_result('disks', project_id, run_config)

    try:
        disks = provider.list_disks(project_id)
    except Exception as e:
        return _enumeration_failed(result, 'listing disks', e, 'Compute Storage Admin')

    for disk in disks:
        # Regional (replicated) disks carry a region instead of a zone
        if disk.get('zone'):
            scope, location, allowed = 'zone', disk['zone'], run_config.allowed_zones
        else:
            scope, location, allowed = 'region', disk.get('region', ''), run_config.allowed_regions

        if not location_allowed(location, allowed):
            logger.debug(f"  Skipping disk {disk['name']} ({scope} {location} not selected)")
            continue

        if is_disk_in_use(disk):
            logger.info(f"  Skipping disk {disk['name']} (attached to instances)")
            continue

        result['found'] += 1
        logger.info(f"  Found Disk: {disk['name']} ({scope}: {location}, size: {disk['size_gb']} GB)")

        if run_config.dry_run:
            continue

        if scope == 'zone':
            delete_func = partial(provider.delete_disk, project_id, location, disk['name'])
        else:
            delete_func = partial(provider.delete_region_disk, project_id, location, disk['name'])

        item = _delete_item(delete_func, disk['name'], location,
                            'deleting disk', 'deletion', 'Deleted disk')
        _record(result, item)

    if result['found'] == 0:
        logger.info(f"[{project_id}] No unattached disks found")
    elif run_config.dry_run:
        logger.info(f"[{project_id}] Would delete {result['found']} disks")

    return result


def release_static_ips(provider, run_config: RunConfig, project_id: str) -> Dict[str, Any]:
    """Release reserved regional and global static IPs that are not in use."""
    logger.info(f"[{project_id}] Checking static IP addresses...")
    result = _new_result('static_ips', project_id, run_config)

    try:
        addresses = provider.list_addresses(project_id)
    except Exception as e:
        return _enumeration_failed(result, 'listing static IP addresses', e, 'Compute Network Admin')

    for address in addresses:
        region = address['region']
        if not location_allowed(region, run_config.allowed_regions):
            logger.debug(f"  Skipping address {address['name']} (region {region} not selected)")
            continue

        if is_address_in_use(address):
            logger.info(f"  Skipping address {address['name']} (in use)")
            continue

        result['found'] += 1
        logger.info(f"  Found Static IP: {address['name']} (region: {region}, "
                    f"address: {address['address']}, status: {address['status']})")

        if not run_config.dry_run:
            item = _delete_item(
                partial(provider.delete_address, project_id, region, address['name']),
                address['name'], region,
                'releasing address', 'release', 'Released static IP'
            )
            _record(result, item)

    # Global addresses are listed separately and have no region
    try:
        global_addresses = provider.list_global_addresses(project_id)
    except Exception as e:
        logger.error(f"Error listing global addresses in {project_id}: {type(e).__name__}: {e}")
        result['error'] = str(e)
        result['status'] = 'partial'
        global_addresses = []

    for address in global_addresses:
        if is_address_in_use(address):
            logger.info(f"  Skipping global address {address['name']} (in use)")
            continue

        result['found'] += 1
        logger.info(f"  Found Global Static IP: {address['name']} "
                    f"(address: {address['address']}, status: {address['status']})")

        if not run_config.dry_run:
            item = _delete_item(
                partial(provider.delete_global_address, project_id, address['name']),
                address['name'], None,
                'releasing global address', 'release', 'Released global static IP'
            )
            _record(result, item)

    if result['found'] == 0:
        logger.info(f"[{project_id}] No unused static IPs found")
    elif run_config.dry_run:
        logger.info(f"[{project_id}] Would release {result['found']} static IPs")

    return result


def _empty_and_delete_bucket(provider, project_id: str, bucket: Dict[str, Any]) -> Dict[str, Any]:
    """Delete every object in the bucket, then the bucket itself."""
    name = bucket['name']
    logger.info(f"  Deleting objects in bucket {name}...")

    objects_deleted = 0
    try:
        for object_name in provider.iter_objects(project_id, name):
            try:
                provider.delete_object(project_id, name, object_name)
                objects_deleted += 1
            except Exception as e:
                logger.error(f"  ERROR deleting object {object_name}: {e}")
    except Exception as e:
        logger.error(f"  ERROR listing objects in bucket {name}: {e}")

    if objects_deleted > 0:
        logger.info(f"  Deleted {objects_deleted} objects from bucket {name}")

    item = _delete_item(partial(provider.delete_bucket, project_id, name), name, bucket['location'],
                        'deleting bucket', 'deletion', 'Deleted bucket')
    item['objects_deleted'] = objects_deleted
    return item


def delete_buckets(provider, run_config: RunConfig, project_id: str) -> Dict[str, Any]:
    """List storage buckets; empty and delete them only when bucket deletion is allowed."""
    logger.info(f"[{project_id}] Checking storage buckets...")
    result = _new_result('buckets', project_id, run_config)
    will_delete = run_config.allow_bucket_deletion and not run_config.dry_run

    try:
        buckets = provider.list_buckets(project_id)
    except Exception as e:
        return _enumeration_failed(result, 'listing storage buckets', e, 'Storage Admin')

    for bucket in buckets:
        result['found'] += 1
        logger.info(f"  Found Bucket: {bucket['name']} (location: {bucket['location']}, "
                    f"storage class: {bucket['storage_class']})")

        if will_delete:
            _record(result, _empty_and_delete_bucket(provider, project_id, bucket))

    if result['found'] == 0:
        logger.info(f"[{project_id}] No buckets found")
    elif run_config.dry_run:
        logger.info(f"[{project_id}] Would delete {result['found']} buckets")
    elif not run_config.allow_bucket_deletion:
        logger.info(f"[{project_id}] Bucket deletion disabled, {result['found']} buckets left in place")
        result['status'] = 'skipped'

    return result


def delete_service_accounts(provider, run_config: RunConfig, project_id: str) -> Dict[str, Any]:
    """Delete automation-created service accounts, all in parallel."""
    logger.info(f"[{project_id}] Checking service accounts...")
    result = _new_result('service_accounts', project_id, run_config)
    prefix = run_config.service_account_prefix

    try:
        accounts = provider.list_service_accounts(project_id)
    except Exception as e:
        return _enumeration_failed(result, 'listing service accounts', e, 'Service Account Admin')

    targets = []
    for account in accounts:
        if is_automation_service_account(account['email'], prefix):
            targets.append(account)
            logger.info(f"  Found Service Account: {account['email']} ({account['display_name']})")

    result['found'] = len(targets)

    if not targets:
        logger.info(f"[{project_id}] No service accounts found with prefix '{prefix}'")
        return result

    if run_config.dry_run:
        logger.info(f"[{project_id}] Would delete {len(targets)} service accounts")
        return result

    logger.info(f"[{project_id}] Deleting {len(targets)} service accounts in parallel...")
    jobs = []
    for account in targets:
        job = partial(
            _delete_item,
            partial(provider.delete_service_account, account['name']),
            account['email'],
            None,
            'deleting service account',
            'deletion',
            'Deleted service account'
        )
        jobs.append((account['email'], None, job))

    for item in _delete_concurrently(jobs, run_config.max_delete_workers):
        _record(result, item)

    logger.info(f"[{project_id}] All service account deletions complete")
    return result
