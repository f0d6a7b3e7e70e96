"""
Tests for the Flask API
"""

from unittest.mock import Mock

import pytest

from app import create_app
from siteagents.agents import AgentContext, MarketingExpertAgent
from siteagents.knowledge import RAGQueryService, ChatService
from siteagents.projects import ProjectService
from siteagents.rescan import RescanService
from siteagents.scraper.crawler import ScraperService
from siteagents.scraper.types import ScrapedContent

SITE = {
    'https://acme.test/': ScrapedContent(
        url='https://acme.test/', title='Home',
        paragraphs=['Welcome to Acme.'],
        links=[{'text': 'About', 'url': 'https://acme.test/about'}]
    ),
    'https://acme.test/about': ScrapedContent(
        url='https://acme.test/about', title='About',
        links=[{'text': 'Home', 'url': 'https://acme.test/'}]
    ),
}


class StaticFetcher:
    def __init__(self, site=None):
        self.site = site or SITE

    def scrape_url(self, url):
        page = self.site.get(url)
        if page is None:
            return ScrapedContent.error(url)
        return ScrapedContent(url=page.url, title=page.title, paragraphs=list(page.paragraphs), links=list(page.links))


class InlineThread:
    """Runs the thread target on start()."""

    def __init__(self, target, args=(), **kwargs):
        self.target = target
        self.args = args
        self.daemon = False

    def start(self):
        self.target(*self.args)


class DeferredThread(InlineThread):
    """Records start() and leaves the target to the test."""

    started = []

    def start(self):
        DeferredThread.started.append(self)

    def run(self):
        self.target(*self.args)


@pytest.fixture
def services(local_store):
    projects = ProjectService()
    scraper = ScraperService(StaticFetcher(), projects)
    embeddings = Mock()
    multi_agent = Mock()
    multi_agent.is_ready.return_value = True
    multi_agent.process_query.return_value = {'success': True, 'response': 'Answer', 'sources': []}
    multi_agent.process_thinking_query.return_value = {'success': True, 'response': 'Thought', 'sources': []}
    multi_agent.get_agent_info.return_value = {'orchestrator': 'x', 'specialists': []}
    return {
        'llm_client': Mock(),
        'knowledge_store': local_store,
        'projects': projects,
        'embeddings': embeddings,
        'scraper': scraper,
        'query_log': RAGQueryService(local_store),
        'thinking_agent': Mock(),
        'multi_agent': multi_agent,
        'global_knowledge': Mock(),
        'chat': ChatService(local_store),
        'rescan': RescanService(scraper, projects, local_store, embeddings),
    }


@pytest.fixture
def app(services):
    app = create_app(services=services)
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def inline_threads(monkeypatch):
    monkeypatch.setattr('app.routes.threading.Thread', InlineThread)


@pytest.fixture
def deferred_threads(monkeypatch):
    DeferredThread.started = []
    monkeypatch.setattr('app.routes.threading.Thread', DeferredThread)
    return DeferredThread.started


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.json['status'] == 'healthy'
    assert response.json['agents_ready'] is True


class TestScrape:
    @pytest.mark.parametrize('body', [{}, {'url': ''}, {'url': 'not a url'}, {'url': 'ftp://acme.test/'}])
    def test_invalid_url(self, client, body):
        response = client.post('/api/scrape', json=body)
        assert response.status_code == 400
        assert response.json['code'] == 'VALIDATION_ERROR'

    def test_invalid_max_pages(self, client):
        response = client.post('/api/scrape', json={'url': 'https://acme.test/', 'max_pages': 'lots'})
        assert response.status_code == 400

    def test_single_page_is_stored(self, client, local_store):
        response = client.post('/api/scrape', json={'url': 'https://acme.test/', 'project_id': 'p1'})

        assert response.status_code == 200
        assert response.json['project_id'] == 'p1'
        assert response.json['page']['title'] == 'Home'
        assert len(response.json['sitemap']['nodes']) == 1
        assert local_store.count_scraped_content('p1') == 1

    def test_single_page_fetch_failure(self, client, local_store):
        response = client.post('/api/scrape', json={'url': 'https://acme.test/missing', 'project_id': 'p1'})

        assert response.status_code == 502
        assert response.json['code'] == 'FETCH_FAILED'
        assert local_store.count_scraped_content('p1') == 0

    def test_crawl_runs_in_background(self, client, local_store, inline_threads):
        response = client.post('/api/scrape', json={
            'url': 'https://acme.test/', 'crawl_entire_site': True, 'project_name': 'Acme'
        })

        assert response.status_code == 202
        assert response.json['status'] == 'crawling'
        project_id = response.json['project_id']
        assert local_store.count_scraped_content(project_id) == 2

        project = client.get(f'/api/projects/{project_id}')
        assert project.status_code == 200
        assert project.json['name'] == 'Acme'
        assert project.json['page_count'] == 2
        assert project.json['is_crawling'] is False

        listing = client.get('/api/projects')
        assert listing.json['total'] == 1

        pages = client.get(f'/api/projects/{project_id}/pages')
        assert [page['url'] for page in pages.json['pages']] == ['https://acme.test/', 'https://acme.test/about']

        sitemap = client.get(f'/api/projects/{project_id}/sitemap?layout=waterfall&simplify=true')
        assert sitemap.status_code == 200
        home = next(node for node in sitemap.json['nodes'] if node['id'] == 'home')
        assert home['position'] == {'x': 0, 'y': 0}

    def test_crawl_conflict(self, client, services):
        client.application.scraper = Mock(**{'begin_crawl.return_value': None})

        response = client.post('/api/scrape', json={'url': 'https://acme.test/', 'crawl_entire_site': True})
        assert response.status_code == 409
        assert response.json['code'] == 'CRAWL_IN_PROGRESS'

    def test_back_to_back_crawls_conflict(self, client, local_store, deferred_threads):
        body = {'url': 'https://acme.test/', 'crawl_entire_site': True}

        first = client.post('/api/scrape', json=body)
        second = client.post('/api/scrape', json=body)

        assert [first.status_code, second.status_code] == [202, 409]
        assert len(deferred_threads) == 1

        deferred_threads[0].run()
        assert local_store.count_scraped_content(first.json['project_id']) == 2
        assert client.post('/api/scrape', json=body).status_code == 202

    def test_string_flags(self, client, local_store):
        response = client.post('/api/scrape', json={
            'url': 'https://acme.test/', 'project_id': 'p1', 'crawl_entire_site': 'false'
        })
        assert response.status_code == 200
        assert response.json['page']['title'] == 'Home'

        response = client.post('/api/scrape', json={'url': 'https://acme.test/', 'crawl_entire_site': 'maybe'})
        assert response.status_code == 400
        assert response.json['error'] == 'crawl_entire_site must be a boolean'

    def test_single_page_rescrape_upserts(self, client, local_store):
        for _ in range(2):
            client.post('/api/scrape', json={'url': 'https://acme.test/', 'project_id': 'p1'})
        assert local_store.count_scraped_content('p1') == 1

    def test_stop(self, client):
        response = client.post('/api/scrape/stop')
        assert response.status_code == 200
        assert response.json == {'stopped': False}


class TestProjects:
    def test_unknown_project(self, client):
        assert client.get('/api/projects/missing').status_code == 404
        assert client.get('/api/projects/missing/sitemap').status_code == 404

    def test_pages_fall_back_to_store(self, client, local_store):
        local_store.store_scraped_content('p1', 'https://acme.test/', 'Home', {'url': 'https://acme.test/', 'title': 'Home'})

        response = client.get('/api/projects/p1/pages')
        assert response.json['pages'] == [{'url': 'https://acme.test/', 'title': 'Home'}]

    def test_embeddings_endpoints(self, client, services):
        services['embeddings'].process_missing_embeddings.return_value = {'successful': 3, 'failed': 0, 'message': 'ok'}
        services['embeddings'].check_embedding_health.return_value = {'health_score': 100}

        assert client.post('/api/projects/p1/embeddings').json['successful'] == 3
        services['embeddings'].process_missing_embeddings.assert_called_once_with('p1')
        assert client.get('/api/projects/p1/embeddings/health').json == {'health_score': 100}

    def test_rag_stats(self, client, local_store):
        local_store.log_rag_query('p1', 'pricing?', [], 0.5)
        response = client.get('/api/projects/p1/rag-stats')
        assert response.json['avg_confidence'] == pytest.approx(0.5)

    def test_brand_voice_round_trip(self, client, local_store):
        assert client.get('/api/projects/p1/brand-voice').status_code == 404

        response = client.put('/api/projects/p1/brand-voice', json={
            'tone': 'friendly', 'audience': 'founders', 'key_messages': ['Ship faster'],
        })
        assert response.status_code == 200
        assert response.json['tone'] == 'friendly'

        voice = client.get('/api/projects/p1/brand-voice').json
        assert voice['audience'] == 'founders'
        assert voice['key_messages'] == ['Ship faster']

    def test_brand_voice_reaches_marketing_prompt(self, client, mock_llm, local_store):
        client.put('/api/projects/p1/brand-voice', json={'tone': 'bold', 'style': 'punchy'})

        MarketingExpertAgent(mock_llm, local_store).process(AgentContext(query='Launch ideas', project_id='p1'))

        prompt = mock_llm.complete.call_args.kwargs['messages'][-1]['content']
        assert 'Brand Voice Guidelines:\nTone: bold\nStyle: punchy' in prompt

    @pytest.mark.parametrize('body', [
        {}, {'tone': ''}, {'mood': 'happy'}, {'tone': 'calm', 'terminology': 'not a list'},
    ])
    def test_brand_voice_validation(self, client, body):
        response = client.put('/api/projects/p1/brand-voice', json=body)
        assert response.status_code == 400
        assert response.json['code'] == 'VALIDATION_ERROR'


CHANGED_SITE = {
    'https://acme.test/': ScrapedContent(
        url='https://acme.test/', title='Home',
        paragraphs=['Welcome to Acme.'],
        links=[
            {'text': 'About', 'url': 'https://acme.test/about'},
            {'text': 'Pricing', 'url': 'https://acme.test/pricing'},
        ]
    ),
    'https://acme.test/about': ScrapedContent(
        url='https://acme.test/about', title='About',
        paragraphs=['Founded in 2020.'],
        links=[{'text': 'Home', 'url': 'https://acme.test/'}]
    ),
    'https://acme.test/pricing': ScrapedContent(
        url='https://acme.test/pricing', title='Pricing',
        paragraphs=['Plans start at $10.']
    ),
}


class TestRescan:
    @pytest.fixture
    def crawled(self, client, inline_threads):
        client.post('/api/scrape', json={'url': 'https://acme.test/', 'crawl_entire_site': True, 'project_id': 'acme'})
        return 'acme'

    def test_only_new_and_changed_pages_reembedded(self, client, services, local_store, crawled):
        services['scraper'].fetcher = StaticFetcher(CHANGED_SITE)

        response = client.post(f'/api/projects/{crawled}/rescan', json={})

        assert response.status_code == 200
        assert response.json['comparison'] == {
            'new_urls': ['https://acme.test/pricing'],
            'changed_urls': ['https://acme.test/about'],
            'unchanged_urls': ['https://acme.test/'],
            'removed_urls': [],
        }
        assert response.json['pages_crawled'] == 3
        assert response.json['pages_embedded'] == 2

        embedded = [call.args[0].url for call in services['embeddings'].process_content.call_args_list]
        assert embedded == ['https://acme.test/pricing', 'https://acme.test/about']

        assert local_store.count_scraped_content(crawled) == 3
        about = local_store.get_scraped_content(crawled, url='https://acme.test/about')
        assert about[0]['content']['paragraphs'] == ['Founded in 2020.']
        assert client.get(f'/api/projects/{crawled}').json['page_count'] == 3

    def test_removed_pages_reported(self, client, services, crawled):
        services['scraper'].fetcher = StaticFetcher({'https://acme.test/': SITE['https://acme.test/']})

        response = client.post(f'/api/projects/{crawled}/rescan', json={'generate_embeddings': 'false'})

        assert response.json['comparison']['removed_urls'] == ['https://acme.test/about']
        assert response.json['pages_embedded'] == 0
        services['embeddings'].process_content.assert_not_called()

    def test_unknown_project(self, client):
        response = client.post('/api/projects/missing/rescan', json={})
        assert response.status_code == 404

    def test_project_without_content(self, client, services):
        services['projects'].create_project('empty', 'Empty', 'https://acme.test/')

        response = client.post('/api/projects/empty/rescan', json={})
        assert response.status_code == 409
        assert response.json['code'] == 'NO_CONTENT'

    def test_rescan_during_crawl(self, client, services, crawled):
        assert services['scraper'].begin_crawl('other') is not None

        response = client.post(f'/api/projects/{crawled}/rescan', json={})
        assert response.status_code == 409
        assert response.json['code'] == 'CRAWL_IN_PROGRESS'

    def test_invalid_options(self, client, crawled):
        response = client.post(f'/api/projects/{crawled}/rescan', json={'max_pages': 0})
        assert response.status_code == 400


class TestChat:
    def test_requires_message_and_project(self, client):
        assert client.post('/api/chat', json={'project_id': 'p1'}).status_code == 400
        assert client.post('/api/chat', json={'message': 'hi'}).status_code == 400

    def test_invalid_mode(self, client):
        response = client.post('/api/chat', json={'message': 'hi', 'project_id': 'p1', 'mode': 'magic'})
        assert response.status_code == 400

    def test_detects_task_type(self, client, services):
        response = client.post('/api/chat', json={'message': 'Draft an email to customers', 'project_id': 'p1'})

        assert response.status_code == 200
        assert response.json['response'] == 'Answer'
        assert response.json['task_type'] == 'email'
        assert response.json['mode'] == 'multi_agent'
        services['multi_agent'].process_query.assert_called_once_with(
            'Draft an email to customers', 'p1', 'email', user_context=None, history=[]
        )

    def test_conversation_created_and_history_passed(self, client, services):
        first = client.post('/api/chat', json={'message': 'Who are our customers?', 'project_id': 'p1'})
        conversation_id = first.json['conversation_id']
        assert conversation_id

        client.post('/api/chat', json={
            'message': 'Write them a welcome email', 'project_id': 'p1', 'conversation_id': conversation_id
        })

        history = services['multi_agent'].process_query.call_args.kwargs['history']
        assert history == [
            {'role': 'user', 'content': 'Who are our customers?'},
            {'role': 'assistant', 'content': 'Answer'},
        ]

        messages = client.get(f'/api/conversations/{conversation_id}/messages').json['messages']
        assert [m['role'] for m in messages] == ['user', 'assistant', 'user', 'assistant']
        assert messages[2]['content'] == 'Write them a welcome email'

        conversations = client.get('/api/projects/p1/conversations').json
        assert conversations['total'] == 1
        assert conversations['conversations'][0]['title'] == 'Who are our customers?'

    def test_failed_answer_not_saved(self, client, services):
        services['multi_agent'].process_query.return_value = {'success': False, 'response': 'Sorry'}
        response = client.post('/api/chat', json={'message': 'hi', 'project_id': 'p1'})

        messages = client.get(f"/api/conversations/{response.json['conversation_id']}/messages").json
        assert messages['total'] == 0

    def test_unknown_conversation(self, client, services):
        response = client.post('/api/chat', json={'message': 'hi', 'project_id': 'p1', 'conversation_id': 'nope'})
        assert response.status_code == 404
        services['multi_agent'].process_query.assert_not_called()

    def test_conversation_of_other_project(self, client, local_store):
        conversation_id = local_store.create_conversation('p2', 'Elsewhere')
        response = client.post('/api/chat', json={'message': 'hi', 'project_id': 'p1', 'conversation_id': conversation_id})
        assert response.status_code == 404

    def test_thinking_mode(self, client, services):
        response = client.post('/api/chat', json={
            'message': 'Why?', 'project_id': 'p1', 'mode': 'thinking', 'task_type': 'research', 'categories': ['seo']
        })

        assert response.json['response'] == 'Thought'
        services['multi_agent'].process_thinking_query.assert_called_once_with('Why?', 'p1', 'research', ['seo'])

    def test_task_type_hints(self, client):
        response = client.get('/api/chat/task-type', query_string={'message': 'Write a newsletter'})
        assert response.json == {
            'task_type': 'email',
            'placeholder': 'Describe the email you want to create...',
            'loading_message': 'Crafting email content...',
        }
        assert client.get('/api/chat/task-type').json['loading_message'] == 'Thinking...'


class TestConversations:
    def test_create_list_delete(self, client, local_store):
        created = client.post('/api/projects/p1/conversations', json={'title': 'Q3 planning ' * 10})
        assert created.status_code == 201
        conversation_id = created.json['id']
        assert len(created.json['title']) == 50

        local_store.add_chat_message(conversation_id, 'user', 'hello')
        assert client.get(f'/api/conversations/{conversation_id}/messages').json['total'] == 1

        assert client.delete(f'/api/conversations/{conversation_id}').json == {'deleted': conversation_id}
        assert client.get('/api/projects/p1/conversations').json['total'] == 0
        assert local_store.get_chat_messages(conversation_id) == []

    def test_missing_title(self, client):
        assert client.post('/api/projects/p1/conversations', json={}).status_code == 400

    def test_unknown_conversation(self, client):
        assert client.get('/api/conversations/nope/messages').status_code == 404
        assert client.delete('/api/conversations/nope').status_code == 404


def test_agents(client):
    assert client.get('/api/agents').json == {'orchestrator': 'x', 'specialists': []}


class TestKnowledge:
    def test_missing_fields(self, client):
        response = client.post('/api/knowledge', json={'content': 'x'})
        assert response.status_code == 400
        assert 'source' in response.json['error']

    def test_created(self, client, services):
        services['global_knowledge'].add_knowledge.return_value = 'k1'
        response = client.post('/api/knowledge', json={
            'content': 'Use clear CTAs.', 'source': 'blog', 'content_type': 'tip',
            'marketing_domain': 'conversion', 'tags': ['cta'],
        })

        assert response.status_code == 201
        assert response.json == {'id': 'k1', 'status': 'created'}
        kwargs = services['global_knowledge'].add_knowledge.call_args.kwargs
        assert kwargs['complexity_level'] == 'beginner'
        assert kwargs['tags'] == ['cta']

    def test_failure(self, client, services):
        services['global_knowledge'].add_knowledge.return_value = None
        response = client.post('/api/knowledge', json={
            'content': 'x', 'source': 's', 'content_type': 't', 'marketing_domain': 'd'
        })
        assert response.status_code == 500
