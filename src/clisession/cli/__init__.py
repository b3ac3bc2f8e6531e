"""clisession command-line interface."""
