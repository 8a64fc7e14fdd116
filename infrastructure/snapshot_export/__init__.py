"""Snapshot export topology: event bindings and per-database resource derivation."""
