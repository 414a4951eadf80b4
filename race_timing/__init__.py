"""
Race Timing Leaderboard - Core Package

This package contains the core modules for:
- CSV ingestion of roster and RFID scan logs (race_timing.ingestion)
- Time resolution, ranking and leaderboard rows (race_timing.timing)
- Shared configuration and utilities
"""

from race_timing.config import *
