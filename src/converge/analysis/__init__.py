"""Diffing, planning and drift detection."""
