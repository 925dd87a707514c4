"""GitOps PR automator: version reconciliation between upstream releases and a GitOps repository."""

__version__ = "0.1.0"

from gitops_automator.config import AutomatorConfig, load_config
from gitops_automator.engines.change_collector import (
    CommitRecord,
    ReconciliationResult,
    SourceRepoChanges,
)
from gitops_automator.engines.reconciler import ReconcileOutcome, Reconciler, ReconcileState
from gitops_automator.engines.version_locator import TrackedFile
from gitops_automator.engines.version_resolver import VersionTransition
from gitops_automator.overrides import OverrideVersion, parse_override_versions
from gitops_automator.runner import AutomatorRunner, CycleResult

__all__ = [
    "AutomatorConfig",
    "AutomatorRunner",
    "CommitRecord",
    "CycleResult",
    "OverrideVersion",
    "ReconcileOutcome",
    "ReconcileState",
    "Reconciler",
    "ReconciliationResult",
    "SourceRepoChanges",
    "TrackedFile",
    "VersionTransition",
    "load_config",
    "parse_override_versions",
]
