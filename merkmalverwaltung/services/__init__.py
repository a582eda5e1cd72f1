"""Service modules for merkmalverwaltung."""
from merkmalverwaltung.services.health_monitor import ConnectionHealthMonitor
from merkmalverwaltung.services.record_service import RecordService, RecordPage, DuplicateReport
from merkmalverwaltung.services.identnr_service import (
    IdentnrService, IdentnrStats, AddIdentnrResult, CloneResult, CopyResult
)
from merkmalverwaltung.services.group_service import (
    GroupService, Group, GroupTemplate, BulkDeleteResult, derive_groups
)
from merkmalverwaltung.services.reconciler import (
    GroupReconciler, GroupState, ReconcileResult, MembershipDiff, diff_membership
)

__all__ = [
    # Health
    'ConnectionHealthMonitor',
    # Records
    'RecordService', 'RecordPage', 'DuplicateReport',
    # Identnrs
    'IdentnrService', 'IdentnrStats', 'AddIdentnrResult', 'CloneResult', 'CopyResult',
    # Groups
    'GroupService', 'Group', 'GroupTemplate', 'BulkDeleteResult', 'derive_groups',
    # Reconcile
    'GroupReconciler', 'GroupState', 'ReconcileResult', 'MembershipDiff', 'diff_membership',
]
