"""HTTP API for the payroll close pipeline and reports."""
