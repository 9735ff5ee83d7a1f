"""Pure domain types for bulk payroll runs."""
