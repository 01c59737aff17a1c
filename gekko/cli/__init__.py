"""Gekko operator console (command line)."""
