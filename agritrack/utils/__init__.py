"""Utility helpers for AgriTrack."""
