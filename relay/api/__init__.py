"""HTTP API for the chat relay."""
