"""Pure domain types for the payroll engine: clock and value objects."""
