"""Deterministic per-turn pipeline: safety, intent, ranking, resolution, fallback."""
