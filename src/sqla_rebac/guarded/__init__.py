"""Guarded operations: authorized reads and writes against the database."""

from sqla_rebac.guarded._async import (
    guarded_batch_delete_async,
    guarded_batch_update_async,
    guarded_mutate_async,
    list_with_permissions_async,
)
from sqla_rebac.guarded._batch import guarded_batch_delete, guarded_batch_update
from sqla_rebac.guarded._mutate import guarded_mutate
from sqla_rebac.guarded._read import AuthorizedListing, PermissionVector, list_with_permissions

__all__ = [
    "AuthorizedListing",
    "PermissionVector",
    "guarded_batch_delete",
    "guarded_batch_delete_async",
    "guarded_batch_update",
    "guarded_batch_update_async",
    "guarded_mutate",
    "guarded_mutate_async",
    "list_with_permissions",
    "list_with_permissions_async",
]
