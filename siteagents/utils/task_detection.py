"""
Chat Task Detection
"""

TASK_TYPES = ('general', 'email', 'marketing', 'research', 'summary', 'content')

MARKETING_PHRASES = [
    'seo', 'eeat', 'e-e-a-t', 'marketing strategy', 'content calendar', 'blog post',
    'content strategy', 'lead generation', 'sales funnel', 'conversion', 'growth',
]
CONTENT_PHRASES = ['create content', 'article', 'content creation', 'write a post']
EMAIL_PHRASES = ['email', 'subject line', 'newsletter']
SUMMARY_PHRASES = ['summarize', 'summary']
RESEARCH_PHRASES = ['research', 'find information', 'tell me about']

PLACEHOLDERS = {
    'email': "Describe the email you want to create...",
    'marketing': "Ask about marketing strategies, content ideas, or SEO best practices...",
    'research': "What would you like me to research for you?",
    'summary': "What would you like me to summarize?",
}

LOADING_MESSAGES = {
    'email': "Crafting email content...",
    'marketing': "Analyzing marketing strategies...",
    'research': "Researching information...",
    'summary': "Creating summary...",
}


def _contains_any(text: str, phrases) -> bool:
    return any(phrase in text for phrase in phrases)


def detect_task_type(message: str) -> str:
    """Guess the task type of a chat message from its wording."""
    text = (message or '').lower()

    if _contains_any(text, MARKETING_PHRASES):
        return 'marketing'
    if _contains_any(text, CONTENT_PHRASES):
        return 'content'
    if _contains_any(text, EMAIL_PHRASES):
        return 'email'
    if _contains_any(text, SUMMARY_PHRASES) or text.startswith('tldr'):
        return 'summary'
    if _contains_any(text, RESEARCH_PHRASES):
        return 'research'
    return 'general'


def get_placeholder_text(task_type: str) -> str:
    return PLACEHOLDERS.get(task_type, "Type your message here...")


def get_loading_message(task_type: str) -> str:
    return LOADING_MESSAGES.get(task_type, "Thinking...")
