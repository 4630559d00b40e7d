"""Split pending scans into batches and mini-batches."""

from ai_scan.models.model_batch import Batch, MiniBatch
from ai_scan.models.model_config import clamp_mini_batch_size
from ai_scan.models.model_scan import PendingScan


def _chunk(items: list[PendingScan], size: int) -> list[list[PendingScan]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


def organize_batches(
    scans: list[PendingScan],
    batch_size: int,
    mini_batch_size: int,
) -> list[Batch]:
    """Partition scans into batches, then each batch into mini-batches.

    Greedy left-to-right: batch k holds scans [(k-1)*batch_size, k*batch_size).
    Mini-batch numbering restarts at 1 in every batch. Input order is kept.

    Args:
        scans: Pending scans in input order
        batch_size: Scans per batch (>= 1)
        mini_batch_size: Scans per agent invocation, clamped to [1, 10]

    Returns:
        List of batches, empty if there are no scans

    Raises:
        ValueError: If batch_size is less than 1
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    effective_mini = clamp_mini_batch_size(mini_batch_size)

    batches: list[Batch] = []
    for batch_index, batch_scans in enumerate(_chunk(scans, batch_size), start=1):
        mini_batches = [
            MiniBatch(mini_batch_number=mini_index, scans=mini_scans)
            for mini_index, mini_scans in enumerate(_chunk(batch_scans, effective_mini), start=1)
        ]
        batches.append(
            Batch(batch_number=batch_index, scans=batch_scans, mini_batches=mini_batches)
        )

    return batches


def summarize_batches(batches: list[Batch]) -> dict[str, int]:
    """Count batches, mini-batches and URLs for a batch plan."""
    return {
        "batches": len(batches),
        "mini_batches": sum(len(b.mini_batches) for b in batches),
        "total_urls": sum(len(b.scans) for b in batches),
    }
