"""NASA FIRMS fire-detection ingestion pipeline."""
