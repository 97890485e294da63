"""
Beliefted API: prayers, words and faith stories with reactions, comments and notifications
"""

__version__ = "1.0.0"
