"""
Thin wrapper around the Google Cloud client libraries used by the cleanup.

List methods return plain dicts. Delete methods block until the provider
reports the operation as finished: a rejected request raises the client
library's GoogleAPIError, a failed wait raises OperationWaitError.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from google.cloud import compute_v1, iam_admin_v1, storage

from resource_utils import extract_location_from_url

logger = logging.getLogger(__name__)


class OperationWaitError(Exception):
    """A delete was accepted but waiting for it to finish failed."""

    def __init__(self, resource_name: str, cause: Exception):
        super().__init__(f"operation for {resource_name} did not complete: {cause}")
        self.resource_name = resource_name
        self.cause = cause


class GcpProvider:
    """Lazily created Compute Engine, Cloud Storage and IAM clients."""

    def __init__(self, operation_timeout: Optional[float] = None):
        self.operation_timeout = operation_timeout
        self._instances_client = None
        self._disks_client = None
        self._region_disks_client = None
        self._addresses_client = None
        self._global_addresses_client = None
        self._iam_client = None
        self._storage_clients = {}

    # --- Clients ---

    @property
    def instances_client(self):
        if self._instances_client is None:
            self._instances_client = compute_v1.InstancesClient()
        return self._instances_client

    @property
    def disks_client(self):
        if self._disks_client is None:
            self._disks_client = compute_v1.DisksClient()
        return self._disks_client

    @property
    def region_disks_client(self):
        if self._region_disks_client is None:
            self._region_disks_client = compute_v1.RegionDisksClient()
        return self._region_disks_client

    @property
    def addresses_client(self):
        if self._addresses_client is None:
            self._addresses_client = compute_v1.AddressesClient()
        return self._addresses_client

    @property
    def global_addresses_client(self):
        if self._global_addresses_client is None:
            self._global_addresses_client = compute_v1.GlobalAddressesClient()
        return self._global_addresses_client

    @property
    def iam_client(self):
        if self._iam_client is None:
            self._iam_client = iam_admin_v1.IAMClient()
        return self._iam_client

    def storage_client(self, project_id: str):
        if project_id not in self._storage_clients:
            logger.debug(f"Creating Cloud Storage client for {project_id}")
            self._storage_clients[project_id] = storage.Client(project=project_id)
        return self._storage_clients[project_id]

    def _wait(self, operation, resource_name: str):
        """Block until a compute operation is done."""
        try:
            # timeout=None removes the polling deadline
            operation.result(timeout=self.operation_timeout)
        except Exception as e:
            raise OperationWaitError(resource_name, e) from e

    # --- Compute instances ---

    def list_instances(self, project_id: str) -> List[Dict[str, Any]]:
        instances = []
        for zone, instances_scoped_list in self.instances_client.aggregated_list(project=project_id):
            if not instances_scoped_list.instances:
                continue
            for instance in instances_scoped_list.instances:
                instances.append({
                    'name': instance.name,
                    'zone': extract_location_from_url(instance.zone),
                    'status': instance.status,
                })
        return instances

    def delete_instance(self, project_id: str, zone: str, name: str):
        operation = self.instances_client.delete(project=project_id, zone=zone, instance=name)
        self._wait(operation, name)

    # --- Disks ---

    def list_disks(self, project_id: str) -> List[Dict[str, Any]]:
        disks = []
        for scope, disks_scoped_list in self.disks_client.aggregated_list(project=project_id):
            if not disks_scoped_list.disks:
                continue
            for disk in disks_scoped_list.disks:
                disks.append({
                    'name': disk.name,
                    'zone': extract_location_from_url(disk.zone),
                    'region': extract_location_from_url(disk.region),
                    'size_gb': disk.size_gb,
                    'users': list(disk.users),
                })
        return disks

    def delete_disk(self, project_id: str, zone: str, name: str):
        operation = self.disks_client.delete(project=project_id, zone=zone, disk=name)
        self._wait(operation, name)

    def delete_region_disk(self, project_id: str, region: str, name: str):
        operation = self.region_disks_client.delete(project=project_id, region=region, disk=name)
        self._wait(operation, name)

    # --- Static IP addresses ---

    def list_addresses(self, project_id: str) -> List[Dict[str, Any]]:
        addresses = []
        for scope, addresses_scoped_list in self.addresses_client.aggregated_list(project=project_id):
            if not addresses_scoped_list.addresses:
                continue
            for address in addresses_scoped_list.addresses:
                addresses.append({
                    'name': address.name,
                    'region': extract_location_from_url(address.region),
                    'address': address.address,
                    'status': address.status,
                })
        return addresses

    def delete_address(self, project_id: str, region: str, name: str):
        operation = self.addresses_client.delete(project=project_id, region=region, address=name)
        self._wait(operation, name)

    def list_global_addresses(self, project_id: str) -> List[Dict[str, Any]]:
        addresses = []
        for address in self.global_addresses_client.list(project=project_id):
            addresses.append({
                'name': address.name,
                'region': None,
                'address': address.address,
                'status': address.status,
            })
        return addresses

    def delete_global_address(self, project_id: str, name: str):
        operation = self.global_addresses_client.delete(project=project_id, address=name)
        self._wait(operation, name)

    # --- Cloud Storage ---

    def list_buckets(self, project_id: str) -> List[Dict[str, Any]]:
        buckets = []
        for bucket in self.storage_client(project_id).list_buckets():
            buckets.append({
                'name': bucket.name,
                'location': bucket.location,
                'storage_class': bucket.storage_class,
            })
        return buckets

    def iter_objects(self, project_id: str, bucket_name: str) -> Iterator[str]:
        """Yield object names page by page; listing errors surface mid-iteration."""
        for blob in self.storage_client(project_id).list_blobs(bucket_name):
            yield blob.name

    def delete_object(self, project_id: str, bucket_name: str, object_name: str):
        self.storage_client(project_id).bucket(bucket_name).blob(object_name).delete()

    def delete_bucket(self, project_id: str, bucket_name: str):
        self.storage_client(project_id).bucket(bucket_name).delete()

    # --- IAM service accounts ---

    def list_service_accounts(self, project_id: str) -> List[Dict[str, Any]]:
        request = iam_admin_v1.ListServiceAccountsRequest(name=f"projects/{project_id}")
        accounts = []
        for account in self.iam_client.list_service_accounts(request=request):
            accounts.append({
                'name': account.name,
                'email': account.email,
                'display_name': account.display_name,
            })
        return accounts

    def delete_service_account(self, resource_name: str):
        # IAM deletes synchronously, there is no operation to wait for
        request = iam_admin_v1.DeleteServiceAccountRequest(name=resource_name)
        self.iam_client.delete_service_account(request=request)
