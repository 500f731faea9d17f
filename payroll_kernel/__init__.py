"""
Payroll Kernel

Lifecycle and persistence core of the Mexican payroll engine:
- Typed, coded exceptions
- Structured JSON logging with run-scoped context
- Period and calculation state machines with ORM immutability guards
- Per-(employee, period) in-flight guard and per-period locks
"""

__version__ = "0.1.0"
