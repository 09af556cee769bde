from photodedup.deletion.service import DeletionCoordinator, DeletionPolicyError
from photodedup.deletion.trash import DryRunRemover, FileRemover, Send2TrashRemover
from photodedup.deletion.types import DeletionFailure, DeletionReport

__all__ = [
    "DeletionCoordinator",
    "DeletionPolicyError",
    "DryRunRemover",
    "FileRemover",
    "Send2TrashRemover",
    "DeletionFailure",
    "DeletionReport",
]
