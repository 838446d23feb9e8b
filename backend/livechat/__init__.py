"""Live chat relay between customers and support agents."""
