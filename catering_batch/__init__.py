"""
catering_batch -- scheduled background work for catering agreements.

Work item generation, the fallback batch, the job registry, the polling
scheduler, the composition root and the CLI.  Import the submodules
directly; this package init stays import-light.
"""
