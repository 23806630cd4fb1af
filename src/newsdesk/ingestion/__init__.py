"""Feed fetching, normalization, persistence and scheduling."""
