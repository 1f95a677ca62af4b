"""doctext -- extract plain text from remotely hosted images and PDFs."""

__version__ = "1.0.0"
