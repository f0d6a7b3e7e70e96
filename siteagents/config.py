"""
Configuration Management
"""

import copy
import logging
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger(__name__)

_config_cache: Optional[Dict[str, Any]] = None

DEFAULT_CONFIG: Dict[str, Any] = {
    'agents': {
        'thinking': {'model': 'gpt-4o-mini', 'temperature': 0.3, 'max_tokens': 1500, 'final_temperature': 0.4},
        'marketing_expert': {'model': 'gpt-4o', 'temperature': 0.7, 'max_tokens': 1500},
        'knowledge_assessor': {'model': 'gpt-4o-mini', 'temperature': 0.1, 'max_tokens': 500},
    },
    'embeddings': {
        'model': 'text-embedding-3-small',
        'batch_size': 5,
        'batch_delay': 0.1,
    },
    'retrieval': {
        'project': {'match_threshold': 0.25, 'match_count': 8, 'min_quality_score': 50},
        'global': {'match_threshold': 0.3, 'match_count': 5, 'min_quality_score': 70},
        'thinking': {'match_threshold': 0.25, 'match_count': 10, 'min_quality_score': 60},
        'min_source_length': 50,
        'max_sources': 10,
    },
    'crawler': {
        'max_pages': 50,
        'timeout': 15.0,
        'user_agent': 'Mozilla/5.0 (compatible; SiteAgents/1.0)',
        'proxy_url': 'https://api.allorigins.win/raw?url=',
    },
    'quality': {
        'approval_threshold': 0.7,
    },
    'chat': {
        'history_limit': 10,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(config_dir: str = "config") -> Dict[str, Any]:
    """Load defaults and merge config_dir/agents.yaml over them."""
    global _config_cache

    config = copy.deepcopy(DEFAULT_CONFIG)
    config_path = Path(config_dir)

    filepath = config_path / 'agents.yaml'
    if filepath.exists():
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                file_config = yaml.safe_load(f)
            if file_config:
                _deep_merge(config, file_config)
                logger.debug(f"Loaded config file {filepath}")
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config file {filepath}: {e}")

    _config_cache = config
    return config


def get_config() -> Dict[str, Any]:
    """Get the current configuration."""
    global _config_cache
    if _config_cache is None:
        load_config()
    return _config_cache or {}


def get_agent_config(agent_name: str) -> Dict[str, Any]:
    """Get configuration for a specific agent."""
    return get_config().get('agents', {}).get(agent_name, {})


def get_retrieval_config() -> Dict[str, Any]:
    return get_config().get('retrieval', DEFAULT_CONFIG['retrieval'])


def get_crawler_config() -> Dict[str, Any]:
    return get_config().get('crawler', DEFAULT_CONFIG['crawler'])


def get_embedding_config() -> Dict[str, Any]:
    return get_config().get('embeddings', DEFAULT_CONFIG['embeddings'])


def get_quality_config() -> Dict[str, Any]:
    return get_config().get('quality', DEFAULT_CONFIG['quality'])


def get_chat_config() -> Dict[str, Any]:
    return get_config().get('chat', DEFAULT_CONFIG['chat'])
