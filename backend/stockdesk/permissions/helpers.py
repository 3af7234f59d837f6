# Overview: Utility functions for permission lookups and validation.

from .definitions import PERMISSION_DEFINITIONS, PermissionKey


def get_all_permission_keys():
    """Get list of all permission keys."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_module(module):
    """Get all permissions in a module."""
    return [perm for perm in PERMISSION_DEFINITIONS if perm[2] == module]


def get_permission_definition(key):
    """Get full definition for a permission key."""
    key = parse_permission_key(key)
    if key is None:
        return None
    for perm in PERMISSION_DEFINITIONS:
        if perm[0] == key:
            return {
                "key": perm[0].value,
                "label": perm[1],
                "module": perm[2],
                "sub_group": perm[3],
                "action": perm[4],
            }
    return None


def parse_permission_key(key):
    """Return the PermissionKey for a raw string, or None if unknown."""
    if isinstance(key, PermissionKey):
        return key
    try:
        return PermissionKey(key)
    except ValueError:
        return None


def validate_permission_key(key):
    """Check if a permission key is valid."""
    return parse_permission_key(key) is not None
