"""Batch partitioning."""

from ai_scan.batching.batch_organizer import organize_batches, summarize_batches

__all__ = ["organize_batches", "summarize_batches"]
