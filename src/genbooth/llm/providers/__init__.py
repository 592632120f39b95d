"""Generation transports."""
