"""Request, response and tool data models."""
