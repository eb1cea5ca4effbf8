"""Domain services for snagging reports: update engine, aggregation, PDF export and persistence."""
