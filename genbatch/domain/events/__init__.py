"""Domain Event definitions.

Represents significant occurrences while a job moves through the pipeline,
consumed by progress tracking and logging.
"""
