import logging
from unittest.mock import patch

from conftest import FakeProvider
from project_cleanup import cleanup_project


def _call_names(provider):
    return [call[0] for call in provider.calls]


def test_instances_finish_before_other_cleaners_start(scenario_provider, make_config):
    scenario_provider.delete_delay = 0.05

    cleanup_project(scenario_provider, make_config(dry_run=False), 'proj')

    names = _call_names(scenario_provider)
    last_instance_done = max(i for i, name in enumerate(names) if name == 'delete_instance:done')
    first_disk_call = min(i for i, name in enumerate(names) if name in ('list_disks', 'delete_disk'))
    first_other_list = min(i for i, name in enumerate(names)
                           if name in ('list_addresses', 'list_service_accounts'))
    assert last_instance_done < first_disk_call
    assert last_instance_done < first_other_list


def test_failed_instance_delete_does_not_block_the_rest(scenario_provider, make_config):
    scenario_provider.wait_failures.add('vm-1')

    results = cleanup_project(scenario_provider, make_config(dry_run=False), 'proj')

    assert results['vm_instances']['failed'] == 1
    assert results['disks']['deleted'] == 1
    assert results['static_ips']['deleted'] == 1
    assert results['service_accounts']['deleted'] == 1


def test_listing_failure_is_isolated_to_one_resource_type(scenario_provider, make_config):
    from google.api_core import exceptions
    scenario_provider.list_errors['list_disks'] = exceptions.Forbidden('compute disabled')

    results = cleanup_project(scenario_provider, make_config(dry_run=False), 'proj')

    assert results['disks']['status'] == 'error'
    assert results['vm_instances']['deleted'] == 2
    assert results['service_accounts']['deleted'] == 1


def test_unexpected_cleaner_crash_is_contained(scenario_provider, make_config, caplog):
    with patch('project_cleanup.PARALLEL_CLEANERS', [
        ('disks', _explode, 'deleting disks'),
    ]):
        results = cleanup_project(scenario_provider, make_config(dry_run=True), 'proj')

    assert results['disks']['status'] == 'error'
    assert "Error deleting disks in proj: RuntimeError: kaboom" in caplog.text


def _explode(provider, run_config, project_id):
    raise RuntimeError('kaboom')


def test_buckets_are_left_alone_by_default(make_config, caplog):
    provider = FakeProvider(buckets=[{'name': 'b1', 'location': 'US', 'storage_class': 'STANDARD'}])

    results = cleanup_project(provider, make_config(dry_run=False), 'proj')

    assert 'buckets' not in results
    assert 'list_buckets' not in _call_names(provider)
    assert provider.mutating_calls() == []
    assert "Storage buckets must be deleted manually via GCP Console" in caplog.text


def test_bucket_deletion_capability(make_config, caplog):
    caplog.set_level(logging.INFO)
    provider = FakeProvider(
        buckets=[{'name': 'b1', 'location': 'US', 'storage_class': 'STANDARD'}],
        objects={'b1': ['obj']},
    )

    results = cleanup_project(provider, make_config(dry_run=False, allow_bucket_deletion=True), 'proj')

    assert results['buckets']['deleted'] == 1
    assert [call[0] for call in provider.mutating_calls()] == ['delete_object', 'delete_bucket']
    assert "must be deleted manually" not in caplog.text


def test_bucket_deletion_capability_still_honours_dry_run(make_config):
    provider = FakeProvider(buckets=[{'name': 'b1', 'location': 'US', 'storage_class': 'STANDARD'}])

    results = cleanup_project(provider, make_config(dry_run=True, allow_bucket_deletion=True), 'proj')

    assert results['buckets']['found'] == 1
    assert provider.mutating_calls() == []
