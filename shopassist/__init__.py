"""Shop assistant: catalog retrieval, context building and chat for the product feed."""

__version__ = "0.1.0"
