"""Services for the kernel (write side)."""

from bench_kernel.services.base import BaseService
from bench_kernel.services.sequence_service import SequenceCounter, SequenceService

__all__ = ["BaseService", "SequenceCounter", "SequenceService"]
