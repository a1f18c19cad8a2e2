"""genbatch: resilient batch runner for image and video generation jobs."""

__version__ = "1.0.0"
