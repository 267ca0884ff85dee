"""
SubAlign - Subtitle synchronization utility.

Aligns subtitle timings to a reference subtitle file or to the speech
detected in a reference video, correcting constant and segment-wise
offsets as well as framerate mismatches.
"""

__version__ = "0.1.0";
__author__ = "SubAlign Project";
__license__ = "MIT";
