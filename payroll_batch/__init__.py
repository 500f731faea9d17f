"""
payroll_batch -- Roster-wide payroll calculation.

Runs the per-employee pipeline for every eligible employee of a period on a
bounded thread pool, records per-employee failures without aborting the
run, and honours a cooperative cancellation token.

Architecture:
    payroll_batch/ is a top-level package.  Nothing in payroll_kernel/,
    payroll_config/ or payroll_engines/ imports from it.

Invariants:
    - Tax tables are loaded once, before any employee is touched; a
      configuration error aborts the run with nothing written.
    - At most max_workers calculations are in flight at any moment.
    - Cancellation stops new launches; in-flight work finishes and every
      unlaunched employee is reported as cancelled.
"""
