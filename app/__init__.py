"""
Flask Application Factory
"""

import os
import logging
from typing import Dict, Any, Optional

from flask import Flask
from flask_cors import CORS

logger = logging.getLogger(__name__)

SERVICE_NAMES = [
    'llm_client',
    'knowledge_store',
    'projects',
    'embeddings',
    'scraper',
    'query_log',
    'thinking_agent',
    'multi_agent',
    'global_knowledge',
    'chat',
    'rescan',
]


def create_app(services: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Application factory for creating Flask app.

    Args:
        services: Prebuilt services keyed by attribute name. When given,
            service construction is skipped and these are attached as-is.

    Returns:
        Configured Flask application
    """
    app = Flask(__name__)

    # Load configuration
    app.config.update(
        SECRET_KEY=os.getenv('FLASK_SECRET_KEY', 'dev-secret-key-change-in-production'),
        SUPABASE_URL=os.getenv('SUPABASE_URL'),
        SUPABASE_SERVICE_ROLE_KEY=os.getenv('SUPABASE_SERVICE_ROLE_KEY'),
        OPENAI_API_KEY=os.getenv('OPENAI_API_KEY'),
        LOCAL_DB_PATH=os.getenv('LOCAL_DB_PATH', 'storage/data/knowledge.db'),
        CONFIG_DIR=os.getenv('CONFIG_DIR', 'config'),
        MAX_CONTENT_LENGTH=16 * 1024 * 1024,  # 16MB max request size
        DEV_MODE=os.getenv('DEV_MODE', 'false').lower() == 'true'
    )

    # Enable CORS
    CORS(app, resources={
        r"/api/*": {
            "origins": os.getenv('ALLOWED_ORIGINS', '*').split(','),
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization"]
        }
    })

    # Register blueprints
    from app.routes import main_bp, api_bp
    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp, url_prefix='/api')

    if services is not None:
        for name in SERVICE_NAMES:
            setattr(app, name, services.get(name))
    else:
        with app.app_context():
            _initialize_services(app)

    logger.info("Flask application initialized successfully")

    return app


def _initialize_services(app: Flask) -> None:
    """Initialize application services."""
    from siteagents.config import load_config
    from siteagents.llm_client import OpenAIClient
    from siteagents.knowledge import (
        create_knowledge_store, EmbeddingService, GlobalKnowledgeService, RAGQueryService, ChatService
    )
    from siteagents.projects import ProjectService
    from siteagents.rescan import RescanService
    from siteagents.scraper import PageFetcher
    from siteagents.scraper.crawler import ScraperService
    from siteagents.agents import ThinkingAgent
    from siteagents.orchestrator import OrchestratorAgent, MultiAgentService

    load_config(app.config['CONFIG_DIR'])

    app.llm_client = OpenAIClient(api_key=app.config['OPENAI_API_KEY'])

    # Local SQLite store in DEV_MODE or when Supabase is not configured
    if app.config.get('DEV_MODE'):
        logger.warning("DEV_MODE enabled, using local knowledge store")
        app.knowledge_store = create_knowledge_store(local_db_path=app.config['LOCAL_DB_PATH'])
    else:
        app.knowledge_store = create_knowledge_store(
            supabase_url=app.config['SUPABASE_URL'],
            supabase_key=app.config['SUPABASE_SERVICE_ROLE_KEY'],
            local_db_path=app.config['LOCAL_DB_PATH']
        )

    app.projects = ProjectService()
    app.embeddings = EmbeddingService(app.llm_client, app.knowledge_store)
    app.scraper = ScraperService(PageFetcher(), app.projects, app.embeddings)
    app.query_log = RAGQueryService(app.knowledge_store)
    app.global_knowledge = GlobalKnowledgeService(app.llm_client, app.knowledge_store)
    app.chat = ChatService(app.knowledge_store)
    app.rescan = RescanService(app.scraper, app.projects, app.knowledge_store, app.embeddings)

    app.thinking_agent = ThinkingAgent(app.llm_client, app.knowledge_store)
    app.multi_agent = MultiAgentService(
        OrchestratorAgent(app.llm_client, app.knowledge_store),
        thinking_agent=app.thinking_agent,
        query_log=app.query_log
    )
