"""Media ingestion and metadata-fusion pipeline for the Liora photo gallery."""

__version__ = "0.1.0"
