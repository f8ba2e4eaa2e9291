"""Suggestions Backend - reviewable AI edits for Markdown documents"""

__version__ = "1.0.0"
