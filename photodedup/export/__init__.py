from photodedup.export.schemas import CompleteDuplicateRow, DirectoryPairRow, DirectoryRollupRow, DuplicateFileRow
from photodedup.export.service import (
    complete_rows,
    group_rows,
    pair_rows,
    rollup_rows,
    to_dicts,
    write_complete_csv,
    write_csv,
    write_groups_csv,
    write_pairs_csv,
    write_rollup_csv,
)

__all__ = [
    "CompleteDuplicateRow",
    "DirectoryPairRow",
    "DirectoryRollupRow",
    "DuplicateFileRow",
    "complete_rows",
    "group_rows",
    "pair_rows",
    "rollup_rows",
    "to_dicts",
    "write_complete_csv",
    "write_csv",
    "write_groups_csv",
    "write_pairs_csv",
    "write_rollup_csv",
]
