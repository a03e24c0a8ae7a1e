# Configuration file for the GCP project cleanup script
# You can modify these values to customize the cleanup behavior.
# Every value can also be overridden through a GCP_CLEANUP_* environment variable.

import os
import sys
import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

# GCP project IDs to clean, processed in this order
PROJECT_IDS = [
    "z257c6412e15fa257-tp",
    "mfc4dc04826a8d270-tp",
    "u6c7e2e4892fda638-tp",
]

# Set to False to actually delete resources
DRY_RUN = True

# Only service accounts whose email local part starts with this are deleted
SERVICE_ACCOUNT_PREFIX = "vsa-sa-gcnv"

# Optional location allow-lists - leave empty to clean every zone/region
ALLOWED_ZONES = []
ALLOWED_REGIONS = []

# Buckets must be deleted manually unless this is switched on
ALLOW_BUCKET_DELETION = False

# Maximum number of parallel delete workers per resource type
MAX_DELETE_WORKERS = 16

# Seconds to wait for a delete operation to finish (None waits forever)
OPERATION_TIMEOUT = None

# Append log output to this file in addition to stdout (None = stdout only)
LOG_FILE = None

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

_TRUE_VALUES = ('1', 'true', 'yes', 'on')
_FALSE_VALUES = ('0', 'false', 'no', 'off')


@dataclass(frozen=True)
class RunConfig:
    project_ids: Tuple[str, ...]
    dry_run: bool = True
    service_account_prefix: str = SERVICE_ACCOUNT_PREFIX
    allowed_zones: Tuple[str, ...] = ()
    allowed_regions: Tuple[str, ...] = ()
    allow_bucket_deletion: bool = False
    max_delete_workers: int = MAX_DELETE_WORKERS
    operation_timeout: Optional[float] = None
    log_file: Optional[str] = None


def parse_bool(value: str) -> bool:
    """Parse a boolean environment value such as 'true' or '0'."""
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def parse_list(value: str) -> List[str]:
    """Parse a comma-separated value, dropping blanks."""
    return [item.strip() for item in value.split(',') if item.strip()]


def load_defaults(environ=None) -> dict:
    """Return the module defaults with any GCP_CLEANUP_* overrides applied."""
    env = os.environ if environ is None else environ

    settings = {
        'project_ids': list(PROJECT_IDS),
        'dry_run': DRY_RUN,
        'service_account_prefix': SERVICE_ACCOUNT_PREFIX,
        'allowed_zones': list(ALLOWED_ZONES),
        'allowed_regions': list(ALLOWED_REGIONS),
        'allow_bucket_deletion': ALLOW_BUCKET_DELETION,
        'max_delete_workers': MAX_DELETE_WORKERS,
        'operation_timeout': OPERATION_TIMEOUT,
        'log_file': LOG_FILE,
    }

    if env.get('GCP_CLEANUP_PROJECT_IDS'):
        settings['project_ids'] = parse_list(env['GCP_CLEANUP_PROJECT_IDS'])
    if env.get('GCP_CLEANUP_DRY_RUN'):
        settings['dry_run'] = parse_bool(env['GCP_CLEANUP_DRY_RUN'])
    if env.get('GCP_CLEANUP_SA_PREFIX'):
        settings['service_account_prefix'] = env['GCP_CLEANUP_SA_PREFIX'].strip()
    if env.get('GCP_CLEANUP_ZONES'):
        settings['allowed_zones'] = parse_list(env['GCP_CLEANUP_ZONES'])
    if env.get('GCP_CLEANUP_REGIONS'):
        settings['allowed_regions'] = parse_list(env['GCP_CLEANUP_REGIONS'])
    if env.get('GCP_CLEANUP_ALLOW_BUCKET_DELETION'):
        settings['allow_bucket_deletion'] = parse_bool(env['GCP_CLEANUP_ALLOW_BUCKET_DELETION'])
    if env.get('GCP_CLEANUP_MAX_WORKERS'):
        settings['max_delete_workers'] = int(env['GCP_CLEANUP_MAX_WORKERS'])
    if env.get('GCP_CLEANUP_OPERATION_TIMEOUT'):
        settings['operation_timeout'] = float(env['GCP_CLEANUP_OPERATION_TIMEOUT'])
    if env.get('GCP_CLEANUP_LOG_FILE'):
        settings['log_file'] = env['GCP_CLEANUP_LOG_FILE']

    return settings


def build_run_config(args=None, environ=None) -> RunConfig:
    """Build the run configuration from defaults, environment and parsed CLI args."""
    settings = load_defaults(environ)

    if args is not None:
        if args.projects:
            settings['project_ids'] = args.projects
        if args.delete:
            settings['dry_run'] = False
        if args.dry_run:
            settings['dry_run'] = True
        if args.zones:
            settings['allowed_zones'] = args.zones
        if args.regions:
            settings['allowed_regions'] = args.regions
        if args.sa_prefix:
            settings['service_account_prefix'] = args.sa_prefix
        if args.allow_bucket_deletion:
            settings['allow_bucket_deletion'] = True
        if args.max_workers is not None:
            settings['max_delete_workers'] = args.max_workers
        if args.operation_timeout is not None:
            settings['operation_timeout'] = args.operation_timeout
        if args.log_file:
            settings['log_file'] = args.log_file

    if settings['max_delete_workers'] < 1:
        raise ValueError("max_delete_workers must be at least 1")
    if settings['operation_timeout'] is not None and settings['operation_timeout'] <= 0:
        raise ValueError("operation_timeout must be greater than 0")
    if not settings['service_account_prefix']:
        raise ValueError("service_account_prefix must not be empty")

    return RunConfig(
        project_ids=tuple(settings['project_ids']),
        dry_run=settings['dry_run'],
        service_account_prefix=settings['service_account_prefix'],
        allowed_zones=tuple(settings['allowed_zones']),
        allowed_regions=tuple(settings['allowed_regions']),
        allow_bucket_deletion=settings['allow_bucket_deletion'],
        max_delete_workers=settings['max_delete_workers'],
        operation_timeout=settings['operation_timeout'],
        log_file=settings['log_file'],
    )


def setup_logging(log_file: Optional[str] = None, level=logging.INFO):
    """Log to stdout and, when given, append to log_file as well."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='a'))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )
