"""Generation pipeline: limiter, retries, transport and validation."""
