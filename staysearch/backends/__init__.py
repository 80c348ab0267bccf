"""Search backends - capability contract and browser-driven implementations."""
