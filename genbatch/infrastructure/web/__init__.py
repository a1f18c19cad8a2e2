"""HTTP surface for triggering runs and retrieving results."""
