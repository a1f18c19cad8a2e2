"""Domain models for generation jobs, run settings and outcomes."""
