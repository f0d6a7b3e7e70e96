"""
SiteAgents - website knowledge extraction and multi-agent marketing assistant
"""

__version__ = "1.0.0"
