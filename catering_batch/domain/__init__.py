"""Pure batch-side types and cron evaluation.  ZERO I/O."""
