"""
Helpers shared by the cleaners: URL parsing and the in-use checks that decide
whether a resource may be deleted.
"""

from typing import Any, Dict, Iterable, Optional

from google.cloud import compute_v1

ADDRESS_IN_USE = compute_v1.Address.Status.IN_USE.name


def extract_location_from_url(url: Optional[str]) -> str:
    """Return the last path segment of a resource URL.

    URL format: https://www.googleapis.com/compute/v1/projects/{project}/zones/{zone}
    (or .../regions/{region}). A bare name is returned unchanged.
    """
    if not url:
        return ""
    return url.rstrip('/').split('/')[-1]


# Zone and region URLs share the same layout
extract_zone_from_url = extract_location_from_url
extract_region_from_url = extract_location_from_url


def is_disk_in_use(disk: Dict[str, Any]) -> bool:
    """A disk is in use while any instance lists it as attached."""
    return len(disk.get('users') or []) > 0


def is_address_in_use(address: Dict[str, Any]) -> bool:
    return address.get('status') == ADDRESS_IN_USE


def is_automation_service_account(email: str, prefix: str) -> bool:
    """True if the local part of the email (before '@') starts with prefix."""
    if not email or not prefix:
        return False
    local_part = email.split('@')[0]
    return local_part.startswith(prefix)


def location_allowed(location: str, allowed: Iterable[str]) -> bool:
    """An empty allow-list admits every location."""
    allowed = tuple(allowed)
    if not allowed:
        return True
    return location in allowed
