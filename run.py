#!/usr/bin/env python3
"""
SiteAgents - Entry Point

Initializes logging, validates configuration and starts the Flask API.

Usage:
    Development:
        python run.py dev

    Production:
        gunicorn --bind 0.0.0.0:5000 --workers 1 --threads 8 "run:create_application()"

    Crawl from the command line:
        python run.py crawl https://example.com --max-pages 20

Environment Variables:
    FLASK_ENV: development|production (default: production)
    FLASK_DEBUG: true|false (default: false)
    FLASK_HOST: Host to bind to (default: 0.0.0.0)
    FLASK_PORT: Port to bind to (default: 5000)
    LOG_LEVEL: DEBUG|INFO|WARNING|ERROR (default: INFO)
    OPENAI_API_KEY: Key for chat completions and embeddings
    SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY: Knowledge store backend
    DEV_MODE: true to use the local SQLite knowledge store
"""

import os
import sys
import json
import logging
import signal
import atexit
from pathlib import Path
from datetime import datetime, timezone

from dotenv import load_dotenv

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.absolute()
sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / '.env')

from siteagents import __version__  # noqa: E402


# =============================================================================
# Logging Configuration
# =============================================================================

class JSONFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record):
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def setup_logging() -> logging.Logger:
    """
    Configure application logging.

    Console output plus a daily text log and a daily JSON-lines log under
    storage/logs/.

    Returns:
        Configured logger instance
    """
    log_dir = PROJECT_ROOT / 'storage' / 'logs'
    log_dir.mkdir(parents=True, exist_ok=True)

    log_level_str = os.getenv('LOG_LEVEL', 'INFO').upper()
    log_level = getattr(logging, log_level_str, logging.INFO)

    formatter = logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)

    log_filename = log_dir / f"app_{datetime.now().strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)

    json_log_filename = log_dir / f"app_{datetime.now().strftime('%Y%m%d')}.jsonl"
    json_file_handler = logging.FileHandler(json_log_filename, encoding='utf-8')
    json_file_handler.setLevel(log_level)
    json_file_handler.setFormatter(JSONFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(json_file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)
    logging.getLogger('hpack').setLevel(logging.WARNING)

    logger = logging.getLogger('siteagents')
    logger.info(f"Logging initialized at level {log_level_str}")
    logger.info(f"Log files: {log_filename}")

    return logger


# =============================================================================
# Configuration Validation
# =============================================================================

def validate_configuration() -> dict:
    """
    Validate required configuration and environment variables.

    Returns:
        Dictionary with validated configuration

    Raises:
        SystemExit: If critical configuration is missing
    """
    logger = logging.getLogger('siteagents.config')

    config = {
        'flask': {
            'env': os.getenv('FLASK_ENV', 'production'),
            'debug': os.getenv('FLASK_DEBUG', 'false').lower() == 'true',
            'host': os.getenv('FLASK_HOST', '0.0.0.0'),
            'port': int(os.getenv('FLASK_PORT', 5000)),
            'secret_key': os.getenv('FLASK_SECRET_KEY')
        },
        'supabase': {
            'url': os.getenv('SUPABASE_URL'),
            'service_role_key': os.getenv('SUPABASE_SERVICE_ROLE_KEY'),
        },
        'openai': {
            'api_key': os.getenv('OPENAI_API_KEY'),
            'base_url': os.getenv('OPENAI_BASE_URL', 'https://api.openai.com/v1'),
        },
        'dev_mode': os.getenv('DEV_MODE', 'false').lower() == 'true',
        'local_db_path': os.getenv('LOCAL_DB_PATH', 'storage/data/knowledge.db'),
    }

    errors = []
    warnings = []

    if not config['flask']['secret_key']:
        if config['flask']['env'] == 'production':
            errors.append("FLASK_SECRET_KEY is required in production")
        else:
            config['flask']['secret_key'] = 'dev-secret-key-not-for-production'
            warnings.append("Using default FLASK_SECRET_KEY (development only)")

    if not config['openai']['api_key']:
        errors.append("OPENAI_API_KEY is required")

    supabase_configured = bool(config['supabase']['url'] and config['supabase']['service_role_key'])
    if config['dev_mode']:
        warnings.append(f"DEV_MODE enabled, knowledge stored locally in {config['local_db_path']}")
    elif not supabase_configured:
        warnings.append(
            "SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY missing, "
            f"falling back to local store at {config['local_db_path']}"
        )

    for warning in warnings:
        logger.warning(warning)

    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        logger.error("Please check your .env file or environment variables")
        sys.exit(1)

    logger.info("Configuration validated successfully")
    logger.info(f"Environment: {config['flask']['env']}")
    logger.info(f"Debug mode: {config['flask']['debug']}")

    return config


# =============================================================================
# Application Factory
# =============================================================================

def create_application():
    """
    Create and configure the Flask application.

    Usable as the WSGI entry point for Gunicorn.
    """
    logger = logging.getLogger('siteagents.app')

    try:
        from app import create_app
        app = create_app()
        logger.info("Flask application created successfully")
        return app
    except ImportError as e:
        logger.error(f"Failed to import application: {e}")
        logger.error("Make sure all dependencies are installed: pip install -e .")
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Failed to create application: {e}")
        sys.exit(1)


# =============================================================================
# Signal Handlers
# =============================================================================

def setup_signal_handlers(logger: logging.Logger):
    """Register graceful shutdown handlers."""
    def handle_shutdown(signum, frame):
        sig_name = signal.Signals(signum).name
        logger.info(f"Received {sig_name} signal, initiating graceful shutdown...")
        cleanup()
        sys.exit(0)

    signal.signal(signal.SIGTERM, handle_shutdown)
    signal.signal(signal.SIGINT, handle_shutdown)

    logger.debug("Signal handlers registered")


# =============================================================================
# Cleanup
# =============================================================================

def cleanup():
    """Flush log handlers on shutdown."""
    logger = logging.getLogger('siteagents.cleanup')
    logger.info("Performing cleanup tasks...")

    for handler in logging.root.handlers:
        handler.flush()

    logger.info("Cleanup completed successfully")


# =============================================================================
# Health Check
# =============================================================================

def perform_startup_checks(config: dict) -> bool:
    """
    Perform startup health checks.

    Args:
        config: Application configuration dictionary

    Returns:
        True if all checks pass, False otherwise
    """
    import httpx
    from siteagents.knowledge import create_knowledge_store

    logger = logging.getLogger('siteagents.startup')
    checks_passed = True

    logger.info("Performing startup health checks...")

    # Check 1: Knowledge store
    try:
        if config['dev_mode']:
            store = create_knowledge_store(local_db_path=config['local_db_path'])
        else:
            store = create_knowledge_store(
                supabase_url=config['supabase']['url'],
                supabase_key=config['supabase']['service_role_key'],
                local_db_path=config['local_db_path']
            )
        store.count_scraped_content('startup-check')
        logger.info(f"Knowledge store reachable ({type(store).__name__})")
    except Exception as e:
        logger.error(f"Knowledge store check failed: {e}")
        checks_passed = False

    # Check 2: OpenAI API key validity
    try:
        response = httpx.get(
            f"{config['openai']['base_url']}/models",
            headers={"Authorization": f"Bearer {config['openai']['api_key']}"},
            timeout=10.0
        )
        if response.status_code == 200:
            logger.info("OpenAI API key valid")
        else:
            logger.warning(f"OpenAI API returned status {response.status_code}")
    except httpx.HTTPError as e:
        logger.warning(f"Could not verify OpenAI API key: {e}")

    # Check 3: Storage directory permissions
    try:
        storage_dir = PROJECT_ROOT / 'storage'
        storage_dir.mkdir(parents=True, exist_ok=True)
        test_file = storage_dir / '.write_test'
        test_file.touch()
        test_file.unlink()
        logger.info("Storage directory writable")
    except OSError as e:
        logger.error(f"Storage directory not writable: {e}")
        checks_passed = False

    if checks_passed:
        logger.info("All startup checks passed")
    else:
        logger.error("Some startup checks failed")

    return checks_passed


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """
    Start the Flask development server.

    For production, use a WSGI server like Gunicorn.
    """
    logger = setup_logging()

    logger.info("=" * 60)
    logger.info(f"SiteAgents v{__version__} Starting")
    logger.info("=" * 60)
    logger.info(f"Python version: {sys.version}")
    logger.info(f"Project root: {PROJECT_ROOT}")
    logger.info(f"Start time: {datetime.now(timezone.utc).isoformat()}")

    config = validate_configuration()

    setup_signal_handlers(logger)
    atexit.register(cleanup)

    if not perform_startup_checks(config):
        if config['flask']['env'] == 'production':
            logger.error("Startup checks failed in production mode, exiting")
            sys.exit(1)
        else:
            logger.warning("Startup checks failed, continuing in development mode")

    app = create_application()

    host = config['flask']['host']
    port = config['flask']['port']
    debug = config['flask']['debug']

    logger.info("-" * 60)
    logger.info(f"Starting Flask server on http://{host}:{port}")
    logger.info(f"Debug mode: {debug}")
    logger.info("-" * 60)

    try:
        app.run(
            host=host,
            port=port,
            debug=debug,
            use_reloader=debug,
            threaded=True
        )
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {port} is already in use")
        else:
            logger.exception(f"Failed to start server: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    finally:
        logger.info("Application shutdown complete")


def run_development():
    """Run with debug, auto-reload, verbose logging and the local store."""
    os.environ.setdefault('FLASK_ENV', 'development')
    os.environ.setdefault('FLASK_DEBUG', 'true')
    os.environ.setdefault('LOG_LEVEL', 'DEBUG')
    os.environ.setdefault('DEV_MODE', 'true')

    main()


# =============================================================================
# Command-line Crawl
# =============================================================================

def run_crawl(url: str, max_pages: int = None, project_name: str = None) -> int:
    """Crawl a site from the command line and print a summary."""
    from siteagents.config import load_config, get_crawler_config
    from siteagents.projects import ProjectService
    from siteagents.scraper import PageFetcher
    from siteagents.scraper.crawler import ScraperService
    from siteagents.scraper.types import CrawlOptions
    import uuid

    logger = setup_logging()
    load_config(str(PROJECT_ROOT / 'config'))

    options = CrawlOptions(
        crawl_entire_site=True,
        max_pages=max_pages or get_crawler_config().get('max_pages', 50),
        project_name=project_name
    )
    fetcher = PageFetcher()
    scraper = ScraperService(fetcher, ProjectService())
    project_id = str(uuid.uuid4())

    try:
        pages = scraper.crawl_site(url, options, project_id)
    finally:
        fetcher.close()

    if not pages:
        logger.error(f"Nothing crawled from {url}")
        return 1

    project = scraper.get_current_project()
    errors = [page for page in pages if page.is_error]
    sitemap = scraper.projects.get_sitemap_data(project_id)

    print(f"\nProject:  {project.name} ({project_id})")
    print(f"Pages:    {len(pages)} ({len(errors)} failed)")
    if sitemap:
        print(f"Sitemap:  {len(sitemap.nodes)} nodes, {len(sitemap.edges)} edges")
    print("")
    for page in pages:
        marker = 'x' if page.is_error else '-'
        print(f"  {marker} {page.url}  {page.title}")
    return 0


# =============================================================================
# CLI Interface
# =============================================================================

def cli():
    """
    Command-line interface for the application.

    Commands:
        run         Start the server (default)
        dev         Start in development mode
        check       Run configuration checks only
        crawl URL   Crawl a site and print a summary
        version     Show version information
    """
    import argparse

    parser = argparse.ArgumentParser(
        description='SiteAgents',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python run.py                          Start the server
    python run.py dev                      Start in development mode
    python run.py check                    Validate configuration
    python run.py crawl https://example.com --max-pages 10
    python run.py --port 8080              Start on port 8080
        """
    )

    parser.add_argument(
        'command',
        nargs='?',
        default='run',
        choices=['run', 'dev', 'check', 'crawl', 'version'],
        help='Command to execute (default: run)'
    )
    parser.add_argument('url', nargs='?', help='Start URL for the crawl command')
    parser.add_argument('--host', default=None, help='Host to bind to')
    parser.add_argument('--port', type=int, default=None, help='Port to bind to')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--max-pages', type=int, default=None, help='Page limit for the crawl command')
    parser.add_argument('--project-name', default=None, help='Project name for the crawl command')

    args = parser.parse_args()

    if args.host:
        os.environ['FLASK_HOST'] = args.host
    if args.port:
        os.environ['FLASK_PORT'] = str(args.port)
    if args.debug:
        os.environ['FLASK_DEBUG'] = 'true'

    if args.command == 'run':
        main()
    elif args.command == 'dev':
        run_development()
    elif args.command == 'check':
        setup_logging()
        config = validate_configuration()
        sys.exit(0 if perform_startup_checks(config) else 1)
    elif args.command == 'crawl':
        if not args.url:
            parser.error('crawl requires a URL')
        sys.exit(run_crawl(args.url, args.max_pages, args.project_name))
    elif args.command == 'version':
        print(f"SiteAgents v{__version__}")
        print(f"Python {sys.version}")


if __name__ == '__main__':
    cli()
