"""
Tracking package: classification status ingestion and focused/distracted
duration accumulation.
"""
