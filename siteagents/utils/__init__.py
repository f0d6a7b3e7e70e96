"""
Utility Helpers
"""

from siteagents.utils.task_detection import detect_task_type, get_placeholder_text, get_loading_message
from siteagents.utils.search import preprocess_search_text, create_search_queries

__all__ = [
    'detect_task_type',
    'get_placeholder_text',
    'get_loading_message',
    'preprocess_search_text',
    'create_search_queries',
]
