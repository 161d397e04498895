from datetime import datetime, timedelta

from clawg.models import AgentToken

from factories import make_agent, make_snapshot, make_token

CRON_AUTH = {'Authorization': 'Bearer test-cron-secret'}
ADMIN_AUTH = {'X-Admin-Key': 'test-admin-key'}


def test_health(client):
    response = client.get('/health')

    assert response.status_code == 200
    assert response.get_json()['status'] == 'healthy'


def test_cron_requires_secret(client):
    assert client.post('/api/cron/signal').status_code == 401
    assert client.post('/api/cron/signal', headers={'Authorization': 'Bearer nope'}).status_code == 401


def test_cron_signal_runs_job(client, app):
    make_agent('verified', erc8004_agent_id='8453:7')
    make_agent('anon')

    response = client.post('/api/cron/signal', headers=CRON_AUTH)
    data = response.get_json()

    assert response.status_code == 200
    assert data['success'] is True
    assert data['summary'] == {'processed': 1, 'failed': 0, 'skipped': 1}


def test_cron_secret_in_body(client):
    response = client.post('/api/cron/analytics', json={'cron_secret': 'test-cron-secret'})

    assert response.status_code == 200
    assert response.get_json()['job'] == 'analytics_recompute'


def test_unknown_token_and_agent_return_404(client):
    assert client.get('/api/tokens/999').status_code == 404
    assert client.get('/api/tokens/999/history').status_code == 404
    assert client.get('/api/agents/999/tokens').status_code == 404
    assert client.get('/api/agents/999/signal').status_code == 404
    assert client.get('/api/agents/999/analytics').status_code == 404


def test_token_detail_and_history(client, app):
    agent = make_agent()
    token = make_token(agent, is_primary=True)
    now = datetime.utcnow()
    make_snapshot(token, snapshot_at=now - timedelta(days=2), price_usd=1.0)
    make_snapshot(token, snapshot_at=now - timedelta(hours=1), price_usd=1.25, holders=40)

    detail = client.get(f'/api/tokens/{token.id}').get_json()
    assert detail['token']['metrics']['price_usd'] == 1.25
    assert detail['token']['metrics']['holders'] == 40

    history = client.get(f'/api/tokens/{token.id}/history?days=7').get_json()
    assert [h['price_usd'] for h in history['history']] == [1.0, 1.25]

    tokens = client.get(f'/api/agents/{agent.id}/tokens').get_json()
    assert tokens['count'] == 1


def test_leaderboard_orders_by_metric(client, app):
    make_agent('low', signal_score=20, engagement_rate=0.09)
    make_agent('high', signal_score=80, engagement_rate=0.01)

    by_signal = client.get('/api/leaderboard').get_json()
    assert [a['handle'] for a in by_signal['agents']] == ['high', 'low']

    by_engagement = client.get('/api/leaderboard?metric=engagement&limit=1').get_json()
    assert by_engagement['metric'] == 'engagement'
    assert [a['handle'] for a in by_engagement['agents']] == ['low']


def test_admin_requires_key(client):
    assert client.get('/api/admin/scheduler-status').status_code == 401
    assert client.get('/api/admin/db-stats').status_code == 401


def test_admin_cancel_idle_job(client):
    assert client.post('/api/admin/jobs/signal_recompute/cancel', headers=ADMIN_AUTH).status_code == 409
    assert client.post('/api/admin/jobs/nope/cancel', headers=ADMIN_AUTH).status_code == 404


def test_admin_link_token_and_db_stats(client, app):
    agent = make_agent()

    response = client.post('/api/admin/tokens', headers=ADMIN_AUTH, json={
        'agent_id': agent.id,
        'chain': 'Base',
        'contract_address': '0xDEAD',
        'symbol': 'dead',
        'name': 'Dead Token',
        'is_primary': True,
        'snapshot': False,
    })

    assert response.status_code == 201
    assert response.get_json()['token']['chain'] == 'base'
    assert AgentToken.query.count() == 1

    stats = client.get('/api/admin/db-stats', headers=ADMIN_AUTH).get_json()['stats']
    assert stats['tokens'] == 1
    assert stats['orphaned_snapshots'] == 0


def test_token_directory_endpoint(client, app):
    big = make_agent('big', erc8004_agent_id='8453:1', signal_score=10)
    make_snapshot(make_token(big, symbol='BIG', is_primary=True), market_cap=9_000_000)
    small = make_agent('small', erc8004_agent_id='8453:2', signal_score=90)
    make_snapshot(make_token(small, symbol='SMALL', is_primary=True), market_cap=20_000)

    by_cap = client.get('/api/tokens?sort=marketCap&page_size=1').get_json()
    assert by_cap['success'] is True
    assert by_cap['total'] == 2
    assert by_cap['count'] == 1
    assert by_cap['items'][0]['token']['symbol'] == 'BIG'
    assert by_cap['items'][0]['token']['metrics']['market_cap'] == 9_000_000

    filtered = client.get('/api/tokens?min_market_cap=100000&chain=base').get_json()
    assert [i['agent']['handle'] for i in filtered['items']] == ['big']

    capped = client.get('/api/tokens?page_size=1000').get_json()
    assert capped['page_size'] == 100
    assert [i['agent']['handle'] for i in capped['items']] == ['small', 'big']
