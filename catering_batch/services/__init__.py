"""Batch services: generation, fallback, lock-wrapped jobs and the scheduler."""
