"""Result store package: per-target status and history."""

from clashprobe.store.result_store import DEFAULT_HISTORY_SIZE, ResultStore, TargetRecord

__all__ = ["DEFAULT_HISTORY_SIZE", "ResultStore", "TargetRecord"]
