"""S3 clients."""
