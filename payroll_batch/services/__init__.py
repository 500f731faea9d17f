"""Batch services: the roster runner."""

from payroll_batch.services.executor import PayrollBatchRunner

__all__ = ["PayrollBatchRunner"]
