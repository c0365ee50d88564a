"""Request and response hook plugins loaded at server startup."""
