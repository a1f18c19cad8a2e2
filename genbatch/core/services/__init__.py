"""Application services driving a generation run."""
