"""HTTP API for the try-on pipeline."""
