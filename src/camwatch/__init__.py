"""
CamWatch - Detection-Triggered Camera Recording

Watches a live camera feed, draws detection overlays in real time and
records automatically while a person is in view.
"""

__version__ = "1.0.0"
__author__ = "CamWatch Team"
