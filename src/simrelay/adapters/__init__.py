"""External surfaces of the relay."""
