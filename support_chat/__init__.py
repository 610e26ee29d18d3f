"""Client-side session core for a live support-chat widget"""

__version__ = "1.0.0"
