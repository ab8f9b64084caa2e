"""HTTP server and target polling."""
