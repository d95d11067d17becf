"""Orbiting-fleet simulator: synthetic telemetry plus a command execution engine."""
