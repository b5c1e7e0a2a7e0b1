"""Data structures shared across the monitor."""
