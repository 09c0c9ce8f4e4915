"""Shared test infrastructure for the navcue test suite."""
