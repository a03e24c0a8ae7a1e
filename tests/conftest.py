import threading
import time

import pytest
from google.api_core import exceptions

from config import RunConfig
from gcp_provider import OperationWaitError

MUTATING_CALLS = (
    'delete_instance',
    'delete_disk',
    'delete_region_disk',
    'delete_address',
    'delete_global_address',
    'delete_object',
    'delete_bucket',
    'delete_service_account',
)


class FakeProvider:
    """In-memory stand-in for GcpProvider that records every call."""

    def __init__(self, instances=None, disks=None, addresses=None, global_addresses=None,
                 buckets=None, objects=None, service_accounts=None, delete_delay=0.0):
        self.instances = list(instances or [])
        self.disks = list(disks or [])
        self.addresses = list(addresses or [])
        self.global_addresses = list(global_addresses or [])
        self.buckets = list(buckets or [])
        self.objects = dict(objects or {})
        self.service_accounts = list(service_accounts or [])
        self.delete_delay = delete_delay

        # method name -> exception raised by list_* calls
        self.list_errors = {}
        # resource name -> exception raised when submitting a delete
        self.delete_errors = {}
        # resource names whose delete is accepted but the wait fails
        self.wait_failures = set()
        # bucket name -> exception raised after listing the first object
        self.object_list_errors = {}

        self.calls = []
        self.deleted = set()
        self._lock = threading.Lock()

    def _log(self, *call):
        with self._lock:
            self.calls.append(call)

    def mutating_calls(self, method=None):
        return [call for call in self.calls
                if call[0] in MUTATING_CALLS and (method is None or call[0] == method)]

    def _list(self, method, project_id, records):
        self._log(method, project_id)
        if method in self.list_errors:
            raise self.list_errors[method]
        return [dict(record) for record in records]

    def _delete(self, method, name, *args):
        self._log(method, *args, name)
        if name in self.delete_errors:
            raise self.delete_errors[name]
        with self._lock:
            if name in self.deleted:
                raise exceptions.NotFound(f"{name} was not found")
        if self.delete_delay:
            time.sleep(self.delete_delay)
        if name in self.wait_failures:
            raise OperationWaitError(name, exceptions.DeadlineExceeded("operation timed out"))
        with self._lock:
            self.deleted.add(name)
        self._log(method + ':done', *args, name)

    def list_instances(self, project_id):
        return self._list('list_instances', project_id, self.instances)

    def delete_instance(self, project_id, zone, name):
        self._delete('delete_instance', name, project_id, zone)

    def list_disks(self, project_id):
        return self._list('list_disks', project_id, self.disks)

    def delete_disk(self, project_id, zone, name):
        self._delete('delete_disk', name, project_id, zone)

    def delete_region_disk(self, project_id, region, name):
        self._delete('delete_region_disk', name, project_id, region)

    def list_addresses(self, project_id):
        return self._list('list_addresses', project_id, self.addresses)

    def delete_address(self, project_id, region, name):
        self._delete('delete_address', name, project_id, region)

    def list_global_addresses(self, project_id):
        return self._list('list_global_addresses', project_id, self.global_addresses)

    def delete_global_address(self, project_id, name):
        self._delete('delete_global_address', name, project_id)

    def list_buckets(self, project_id):
        return self._list('list_buckets', project_id, self.buckets)

    def iter_objects(self, project_id, bucket_name):
        self._log('iter_objects', project_id, bucket_name)
        for index, object_name in enumerate(self.objects.get(bucket_name, [])):
            if index == 1 and bucket_name in self.object_list_errors:
                raise self.object_list_errors[bucket_name]
            yield object_name

    def delete_object(self, project_id, bucket_name, object_name):
        self._delete('delete_object', object_name, project_id, bucket_name)

    def delete_bucket(self, project_id, bucket_name):
        self._delete('delete_bucket', bucket_name, project_id)

    def list_service_accounts(self, project_id):
        return self._list('list_service_accounts', project_id, self.service_accounts)

    def delete_service_account(self, resource_name):
        self._delete('delete_service_account', resource_name)


def service_account(email, display_name=''):
    return {
        'name': f"projects/proj/serviceAccounts/{email}",
        'email': email,
        'display_name': display_name,
    }


@pytest.fixture
def make_config():
    def _make_config(**overrides):
        settings = {
            'project_ids': ('proj',),
            'dry_run': True,
        }
        settings.update(overrides)
        return RunConfig(**settings)
    return _make_config


@pytest.fixture
def scenario_provider():
    """Two instances, one free disk, one free regional IP, one busy global IP, one automation SA."""
    return FakeProvider(
        instances=[
            {'name': 'vm-1', 'zone': 'us-central1-a', 'status': 'RUNNING'},
            {'name': 'vm-2', 'zone': 'us-east1-b', 'status': 'TERMINATED'},
        ],
        disks=[
            {'name': 'disk-1', 'zone': 'us-central1-a', 'region': '', 'size_gb': 100, 'users': []},
        ],
        addresses=[
            {'name': 'ip-1', 'region': 'us-central1', 'address': '34.1.2.3', 'status': 'RESERVED'},
        ],
        global_addresses=[
            {'name': 'global-ip-1', 'region': None, 'address': '35.1.2.3', 'status': 'IN_USE'},
        ],
        service_accounts=[
            service_account('vsa-sa-gcnv-x@proj.iam.gserviceaccount.com', 'automation'),
            service_account('other-sa@proj.iam.gserviceaccount.com', 'keep me'),
        ],
    )
