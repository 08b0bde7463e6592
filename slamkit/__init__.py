"""Building blocks for feature-based visual SLAM: frames, two-view initialization,
pose conversions, dataset list readers and timing helpers."""

__version__ = "0.1.0"