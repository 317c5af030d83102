"""Drawbridge opening analytics, cascade detection and route-risk prediction."""
