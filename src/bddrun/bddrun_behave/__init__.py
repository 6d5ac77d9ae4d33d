"""Integration with behave: feature parsing, step definitions, environment hooks and configuration."""
