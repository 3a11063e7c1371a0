# Overview: Utility functions for permission lookups.

from .definitions import PERMISSION_DEFINITIONS


def get_all_permission_codes():
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]
