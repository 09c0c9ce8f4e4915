"""Command-line entry points for running a simulated navigation session."""
