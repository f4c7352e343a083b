"""tunebot: configuration store, change fan-out and consumers for the AI and browser services."""
