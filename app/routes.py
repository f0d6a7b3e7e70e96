"""
Flask Routes - Health and API Endpoints
"""

import uuid
import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from urllib.parse import urlparse

from flask import Blueprint, request, jsonify, current_app

from siteagents import __version__
from siteagents.knowledge.conversations import title_from_message
from siteagents.knowledge.store import StoreError, BRAND_VOICE_FIELDS
from siteagents.rescan import RescanError
from siteagents.scraper.sitemap import organize_sitemap, simplify_edges, generate_for_single_page
from siteagents.scraper.types import CrawlOptions, parse_bool, parse_max_pages
from siteagents.utils.task_detection import detect_task_type, get_placeholder_text, get_loading_message

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)
api_bp = Blueprint('api', __name__)

CHAT_MODES = ('multi_agent', 'thinking')
RESCAN_ERROR_STATUS = {'NOT_FOUND': 404, 'NO_CONTENT': 409, 'CRAWL_IN_PROGRESS': 409}
BRAND_VOICE_LIST_FIELDS = ('key_messages', 'terminology', 'avoid_phrases')


def _error(message: str, code: str, status: int):
    return jsonify({'error': message, 'code': code}), status


def _is_valid_url(url) -> bool:
    if not isinstance(url, str) or not url.strip():
        return False
    parsed = urlparse(url.strip())
    return parsed.scheme in ('http', 'https') and bool(parsed.hostname)


def _persist_pages(store, project_id: str, pages) -> int:
    """Upsert non-error pages by URL. Returns how many were stored."""
    stored = 0
    for page in pages:
        if page.is_error:
            continue
        try:
            store.store_scraped_content(project_id, page.url, page.title, page.to_dict())
            stored += 1
        except StoreError as e:
            logger.error(f"Failed to store scraped content for {page.url}: {e}")
    return stored


@main_bp.route('/health')
def health():
    """Health check endpoint."""
    multi_agent = getattr(current_app, 'multi_agent', None)
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'version': __version__,
        'agents_ready': bool(multi_agent and multi_agent.is_ready()),
    })


# ----------------------------------------------------------------------
# Scraping
# ----------------------------------------------------------------------

def run_crawl_job(app, url: str, options: CrawlOptions, project_id: str, token: str):
    """Run a claimed crawl in a background thread and persist its pages."""
    with app.app_context():
        try:
            logger.info(f"Starting crawl job for project {project_id}")
            pages = app.scraper.crawl_site(url, options, project_id, token=token)
            stored = _persist_pages(app.knowledge_store, project_id, pages)
            logger.info(f"Crawl job for project {project_id} stored {stored} pages")
        except Exception as e:
            logger.exception(f"Crawl job error: {e}")


@api_bp.route('/scrape', methods=['POST'])
def scrape():
    """Scrape one page, or start a background crawl of the whole site."""
    data = request.get_json(silent=True) or {}
    url = data.get('url')

    if not _is_valid_url(url):
        return _error('A valid http(s) URL is required', 'VALIDATION_ERROR', 400)
    url = url.strip()

    try:
        options = CrawlOptions.from_dict(data)
    except (TypeError, ValueError) as e:
        return _error(str(e), 'VALIDATION_ERROR', 400)

    scraper = current_app.scraper

    if options.crawl_entire_site:
        project_id = options.use_existing_project_id or str(uuid.uuid4())
        token = scraper.begin_crawl(project_id)
        if token is None:
            return _error('A crawl is already running', 'CRAWL_IN_PROGRESS', 409)

        options = replace(options, use_existing_project_id=project_id)

        # current_app is a proxy; the thread needs the real object
        app = current_app._get_current_object()
        thread = threading.Thread(
            target=run_crawl_job,
            args=(app, url, options, project_id, token)
        )
        thread.daemon = True
        thread.start()

        return jsonify({'project_id': project_id, 'status': 'crawling'}), 202

    try:
        page = scraper.scrape_website(url, options)
    except Exception as e:
        logger.exception(f"Error scraping {url}: {e}")
        return _error('Internal server error', 'INTERNAL_ERROR', 500)

    if page is None or page.is_error:
        return _error(f'Failed to fetch {url}', 'FETCH_FAILED', 502)

    _persist_pages(current_app.knowledge_store, page.project_id, [page])

    return jsonify({
        'project_id': page.project_id,
        'page': page.to_dict(),
        'sitemap': generate_for_single_page(page).to_dict(),
    })


@api_bp.route('/scrape/stop', methods=['POST'])
def stop_scrape():
    scraper = current_app.scraper
    was_crawling = scraper.is_crawling
    scraper.stop_crawling()
    return jsonify({'stopped': was_crawling})


# ----------------------------------------------------------------------
# Projects
# ----------------------------------------------------------------------

@api_bp.route('/projects', methods=['GET'])
def list_projects():
    projects = current_app.projects.get_all_projects()
    return jsonify({
        'projects': [project.to_dict() for project in projects],
        'total': len(projects),
    })


@api_bp.route('/projects/<project_id>', methods=['GET'])
def get_project(project_id: str):
    project = current_app.projects.get_project(project_id)
    if not project:
        return _error('Project not found', 'NOT_FOUND', 404)

    response = project.to_dict()
    response['is_crawling'] = current_app.scraper.is_crawling_project(project_id)
    return jsonify(response)


@api_bp.route('/projects/<project_id>/pages', methods=['GET'])
def get_project_pages(project_id: str):
    """Pages from the current crawl session, falling back to stored content."""
    pages = [page.to_dict() for page in current_app.scraper.get_results_by_project(project_id)]
    if not pages:
        try:
            pages = [record['content'] for record in current_app.knowledge_store.get_scraped_content(project_id)]
        except Exception as e:
            logger.error(f"Failed to load stored pages for {project_id}: {e}")
            return _error('Failed to load pages', 'STORE_ERROR', 500)

    return jsonify({'project_id': project_id, 'pages': pages, 'total': len(pages)})


@api_bp.route('/projects/<project_id>/sitemap', methods=['GET'])
def get_project_sitemap(project_id: str):
    if not current_app.projects.get_project(project_id):
        return _error('Project not found', 'NOT_FOUND', 404)

    sitemap = current_app.projects.get_sitemap_data(project_id)
    if sitemap is None:
        return _error('Sitemap not available yet', 'NOT_FOUND', 404)

    if request.args.get('layout') == 'waterfall':
        sitemap = organize_sitemap(sitemap)
    if request.args.get('simplify', 'false').lower() == 'true':
        sitemap = replace(sitemap, edges=simplify_edges(sitemap.edges))

    return jsonify(sitemap.to_dict())


@api_bp.route('/projects/<project_id>/brand-voice', methods=['GET'])
def get_brand_voice(project_id: str):
    try:
        voice = current_app.knowledge_store.get_brand_voice(project_id)
    except StoreError as e:
        logger.error(f"Failed to load brand voice for {project_id}: {e}")
        return _error('Failed to load brand voice', 'STORE_ERROR', 500)

    if voice is None:
        return _error('Brand voice not set', 'NOT_FOUND', 404)
    return jsonify(voice)


@api_bp.route('/projects/<project_id>/brand-voice', methods=['PUT'])
def save_brand_voice(project_id: str):
    """Replace the project's brand voice. The marketing agent applies it to later answers."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _error('A JSON object is required', 'VALIDATION_ERROR', 400)

    unknown = sorted(key for key in data if key not in BRAND_VOICE_FIELDS)
    if unknown:
        return _error(f"Unknown brand voice fields: {', '.join(unknown)}", 'VALIDATION_ERROR', 400)
    if not any(data.get(key) for key in BRAND_VOICE_FIELDS):
        return _error('At least one brand voice field is required', 'VALIDATION_ERROR', 400)

    for key in BRAND_VOICE_LIST_FIELDS:
        if data.get(key) is not None and not isinstance(data[key], list):
            return _error(f'{key} must be a list', 'VALIDATION_ERROR', 400)

    voice = {key: data.get(key) for key in BRAND_VOICE_FIELDS}
    try:
        current_app.knowledge_store.save_brand_voice(project_id, voice)
    except StoreError as e:
        logger.error(f"Failed to save brand voice for {project_id}: {e}")
        return _error('Failed to save brand voice', 'STORE_ERROR', 500)

    return jsonify(dict(voice, project_id=project_id))


@api_bp.route('/projects/<project_id>/rescan', methods=['POST'])
def rescan_project(project_id: str):
    """Re-crawl a project and re-embed only new and changed pages."""
    data = request.get_json(silent=True) or {}

    try:
        generate_embeddings = parse_bool(data.get('generate_embeddings'), 'generate_embeddings', default=True)
        force_reprocess_all = parse_bool(data.get('force_reprocess_all'), 'force_reprocess_all')
        max_pages = parse_max_pages(data.get('max_pages'))
    except (TypeError, ValueError) as e:
        return _error(str(e), 'VALIDATION_ERROR', 400)

    try:
        result = current_app.rescan.rescan_project(
            project_id,
            generate_embeddings=generate_embeddings,
            force_reprocess_all=force_reprocess_all,
            max_pages=max_pages
        )
    except RescanError as e:
        return _error(str(e), e.code, RESCAN_ERROR_STATUS.get(e.code, 400))
    except StoreError as e:
        logger.error(f"Rescan of {project_id} failed: {e}")
        return _error('Failed to load stored pages', 'STORE_ERROR', 500)

    return jsonify(result)


# ----------------------------------------------------------------------
# Embeddings
# ----------------------------------------------------------------------

@api_bp.route('/projects/<project_id>/embeddings', methods=['POST'])
def process_embeddings(project_id: str):
    """Embed any stored pages of the project that have no chunks yet."""
    result = current_app.embeddings.process_missing_embeddings(project_id)
    return jsonify(result)


@api_bp.route('/projects/<project_id>/embeddings/health', methods=['GET'])
def embedding_health(project_id: str):
    return jsonify(current_app.embeddings.check_embedding_health(project_id))


@api_bp.route('/projects/<project_id>/rag-stats', methods=['GET'])
def rag_stats(project_id: str):
    return jsonify(current_app.query_log.get_stats(project_id))


# ----------------------------------------------------------------------
# Chat and agents
# ----------------------------------------------------------------------

@api_bp.route('/chat', methods=['POST'])
def chat():
    """Answer a chat message with the agent team or the thinking agent."""
    data = request.get_json(silent=True) or {}

    message = (data.get('message') or '').strip()
    if not message:
        return _error('Missing required field: message', 'VALIDATION_ERROR', 400)

    project_id = data.get('project_id')
    if not project_id:
        return _error('Missing required field: project_id', 'VALIDATION_ERROR', 400)

    mode = data.get('mode') or 'multi_agent'
    if mode not in CHAT_MODES:
        return _error(f"mode must be one of: {', '.join(CHAT_MODES)}", 'VALIDATION_ERROR', 400)

    categories = data.get('categories')
    if categories is not None and not isinstance(categories, list):
        return _error('categories must be a list', 'VALIDATION_ERROR', 400)

    task_type = data.get('task_type') or detect_task_type(message)
    multi_agent = current_app.multi_agent
    chat_service = current_app.chat

    conversation_id = data.get('conversation_id')
    if conversation_id:
        conversation = chat_service.get_conversation(conversation_id)
        if not conversation or conversation.get('project_id') != project_id:
            return _error('Conversation not found', 'NOT_FOUND', 404)
        history = chat_service.get_history(conversation_id)
    else:
        conversation_id = chat_service.create_conversation(project_id, message)
        history = []

    if mode == 'thinking':
        result = multi_agent.process_thinking_query(message, project_id, task_type, categories)
    else:
        result = multi_agent.process_query(
            message, project_id, task_type, user_context=data.get('user_context'), history=history
        )

    if conversation_id and result.get('success'):
        chat_service.save_exchange(conversation_id, message, result['response'])

    result['task_type'] = task_type
    result['mode'] = mode
    result['conversation_id'] = conversation_id
    return jsonify(result)


@api_bp.route('/chat/task-type', methods=['GET'])
def chat_task_type():
    """Detected task type for a draft message, with the matching input hints."""
    task_type = detect_task_type(request.args.get('message', ''))
    return jsonify({
        'task_type': task_type,
        'placeholder': get_placeholder_text(task_type),
        'loading_message': get_loading_message(task_type),
    })


@api_bp.route('/projects/<project_id>/conversations', methods=['GET'])
def list_conversations(project_id: str):
    conversations = current_app.chat.get_conversations(project_id)
    return jsonify({'conversations': conversations, 'total': len(conversations)})


@api_bp.route('/projects/<project_id>/conversations', methods=['POST'])
def create_conversation(project_id: str):
    data = request.get_json(silent=True) or {}
    title = (data.get('title') or '').strip()
    if not title:
        return _error('Missing required field: title', 'VALIDATION_ERROR', 400)

    conversation_id = current_app.chat.create_conversation(project_id, title)
    if conversation_id is None:
        return _error('Failed to create conversation', 'STORE_ERROR', 500)
    return jsonify({'id': conversation_id, 'project_id': project_id, 'title': title_from_message(title)}), 201


@api_bp.route('/conversations/<conversation_id>/messages', methods=['GET'])
def conversation_messages(conversation_id: str):
    chat_service = current_app.chat
    if chat_service.get_conversation(conversation_id) is None:
        return _error('Conversation not found', 'NOT_FOUND', 404)

    messages = chat_service.get_messages(conversation_id)
    return jsonify({'conversation_id': conversation_id, 'messages': messages, 'total': len(messages)})


@api_bp.route('/conversations/<conversation_id>', methods=['DELETE'])
def delete_conversation(conversation_id: str):
    chat_service = current_app.chat
    if chat_service.get_conversation(conversation_id) is None:
        return _error('Conversation not found', 'NOT_FOUND', 404)

    if not chat_service.delete_conversation(conversation_id):
        return _error('Failed to delete conversation', 'STORE_ERROR', 500)
    return jsonify({'deleted': conversation_id})


@api_bp.route('/agents', methods=['GET'])
def agents():
    return jsonify(current_app.multi_agent.get_agent_info())


# ----------------------------------------------------------------------
# Global knowledge
# ----------------------------------------------------------------------

@api_bp.route('/knowledge', methods=['POST'])
def add_knowledge():
    """Assess, embed and store a global knowledge entry."""
    data = request.get_json(silent=True) or {}

    missing = [key for key in ('content', 'source', 'content_type', 'marketing_domain') if not data.get(key)]
    if missing:
        return _error(f"Missing required fields: {', '.join(missing)}", 'VALIDATION_ERROR', 400)

    tags = data.get('tags') or []
    if not isinstance(tags, list):
        return _error('tags must be a list', 'VALIDATION_ERROR', 400)

    knowledge_id = current_app.global_knowledge.add_knowledge(
        content=data['content'],
        title=data.get('title'),
        source=data['source'],
        content_type=data['content_type'],
        marketing_domain=data['marketing_domain'],
        complexity_level=data.get('complexity_level') or 'beginner',
        tags=tags,
        metadata=data.get('metadata')
    )

    if knowledge_id is None:
        return _error('Failed to add knowledge entry', 'KNOWLEDGE_ERROR', 500)

    return jsonify({'id': knowledge_id, 'status': 'created'}), 201
