from datetime import datetime, timedelta
from unittest.mock import patch

from clawg.models import db, TokenSnapshot
from clawg.services.errors import MarketDataError
from clawg.services.snapshots import SnapshotService
from clawg.services.sources import PartialMetrics
from clawg.services.tokens import LinkTokenRequest, TokenService

from factories import FakeSource, fake_aggregator, make_agent, make_snapshot, make_token


def link(agent, symbol='CLAWG', chain='base', address='0xABC', **kwargs):
    return TokenService.link_token(
        LinkTokenRequest(agent_id=agent.id, chain=chain, contract_address=address,
                         symbol=symbol, name=symbol.title(), **kwargs),
        record_initial_snapshot=False
    )


# =============================================================================
# SNAPSHOTS
# =============================================================================

def test_onchain_and_aggregator_results_merge_into_one_snapshot(app):
    agent = make_agent()
    token = make_token(agent)
    aggregator = fake_aggregator(
        FakeSource('uniswap_pool', PartialMetrics(source='uniswap_pool', price_usd=2.0, market_cap=2_000_000)),
        FakeSource('gecko_pools', PartialMetrics(source='gecko_pools', price_usd=2.05, market_cap=0,
                                                 liquidity=50_000, volume_24h=10_000)),
        FakeSource('gecko_info', PartialMetrics(source='gecko_info', holders=500), stage=1),
    )

    snapshot = SnapshotService.record_snapshot(token, aggregator)

    assert snapshot.id is not None
    assert snapshot.price_usd == 2.0
    assert snapshot.market_cap == 2_000_000
    assert snapshot.holders == 500
    assert snapshot.liquidity == 50_000
    assert snapshot.volume_24h == 10_000


def test_holders_carry_forward_from_latest_positive_snapshot(app):
    agent = make_agent()
    token = make_token(agent)
    now = datetime.utcnow()
    make_snapshot(token, snapshot_at=now - timedelta(hours=2), holders=300)
    make_snapshot(token, snapshot_at=now - timedelta(hours=1), holders=420)
    make_snapshot(token, snapshot_at=now - timedelta(minutes=30), holders=0)

    aggregator = fake_aggregator(
        FakeSource('gecko_pools', PartialMetrics(source='gecko_pools', price_usd=1.0)),
        FakeSource('gecko_info', error=MarketDataError('rate limited')),
    )
    snapshot = SnapshotService.record_snapshot(token, aggregator)

    assert snapshot.holders == 420
    assert snapshot.price_usd == 1.0


def test_unpriceable_token_records_all_zero_snapshot(app):
    agent = make_agent()
    token = make_token(agent, chain='solana', address='mint123')
    aggregator = fake_aggregator(FakeSource('base_only', PartialMetrics(source='base_only', price_usd=1.0),
                                            chains=['base']))

    snapshot = SnapshotService.record_snapshot(token, aggregator)

    assert snapshot.price_usd == 0
    assert snapshot.market_cap == 0
    assert snapshot.holders == 0


def test_snapshots_are_appended_never_updated(app):
    agent = make_agent()
    token = make_token(agent)
    aggregator = fake_aggregator(FakeSource('gecko_pools', PartialMetrics(source='gecko_pools', price_usd=1.0)))

    SnapshotService.record_snapshot(token, aggregator)
    SnapshotService.record_snapshot(token, aggregator)

    assert TokenSnapshot.query.filter_by(token_id=token.id).count() == 2


def test_history_is_windowed_and_ascending(app):
    agent = make_agent()
    token = make_token(agent)
    now = datetime.utcnow()
    make_snapshot(token, snapshot_at=now - timedelta(days=40), price_usd=0.5)
    make_snapshot(token, snapshot_at=now - timedelta(days=1), price_usd=1.5)
    make_snapshot(token, snapshot_at=now - timedelta(days=10), price_usd=1.0)

    history = SnapshotService.get_history(token.id, days=30)

    assert [s.price_usd for s in history] == [1.0, 1.5]

    bounded = SnapshotService.get_history(token.id, since=now - timedelta(days=50), until=now - timedelta(days=5))
    assert [s.price_usd for s in bounded] == [0.5, 1.0]


def test_latest_snapshot(app):
    agent = make_agent()
    token = make_token(agent)
    now = datetime.utcnow()
    make_snapshot(token, snapshot_at=now - timedelta(hours=1), price_usd=1.0)
    make_snapshot(token, snapshot_at=now, price_usd=2.0)

    assert SnapshotService.latest_snapshot(token.id).price_usd == 2.0


# =============================================================================
# TOKEN REGISTRY
# =============================================================================

def test_link_token_normalizes_and_counts(app):
    agent = make_agent()

    result = link(agent, symbol='clawg', address='0xABCdef')

    assert result.success
    assert result.token.contract_address == '0xabcdef'
    assert result.token.symbol == 'CLAWG'
    assert agent.token_count == 1


def test_link_token_rejects_duplicates(app):
    agent = make_agent()
    link(agent, address='0xabc')

    result = link(agent, address='0xABC')

    assert not result.success
    assert result.error == 'Token already linked for this chain'


def test_same_address_on_another_chain_is_allowed(app):
    agent = make_agent()
    link(agent, chain='base', address='0xabc')

    assert link(agent, chain='ethereum', address='0xabc').success


def test_link_token_validation(app):
    agent = make_agent()

    assert link(agent, decimals=-1).error == 'Invalid decimals'
    missing = TokenService.link_token(
        LinkTokenRequest(agent_id=999, chain='base', contract_address='0x1', symbol='X', name='X'),
        record_initial_snapshot=False
    )
    assert missing.error == 'Agent not found'


def test_only_one_primary_token_per_agent(app):
    agent = make_agent()
    first = link(agent, symbol='ONE', address='0x1', is_primary=True).token
    second = link(agent, symbol='TWO', address='0x2', is_primary=True).token

    db.session.refresh(first)
    assert not first.is_primary
    assert second.is_primary

    TokenService.set_primary_token(first.id, agent.id)
    db.session.refresh(second)
    primaries = [t for t in TokenService.get_agent_tokens(agent.id) if t.is_primary]
    assert [t.id for t in primaries] == [first.id]


def test_primary_falls_back_to_oldest_token(app):
    agent = make_agent()
    older = make_token(agent, symbol='OLD', address='0x1', created_at=datetime.utcnow() - timedelta(days=3))
    make_token(agent, symbol='NEW', address='0x2')

    assert TokenService.get_primary_token(agent.id).id == older.id


def test_initial_snapshot_failure_does_not_undo_link(app):
    agent = make_agent()

    with patch('clawg.services.tokens.SnapshotService.record_snapshot', side_effect=RuntimeError('db down')):
        result = TokenService.link_token(
            LinkTokenRequest(agent_id=agent.id, chain='base', contract_address='0x1', symbol='X', name='X')
        )

    assert result.success
    assert TokenService.get_token(result.token.id) is not None


def test_unlinked_token_snapshots_are_kept_but_hidden(app):
    agent = make_agent()
    token = make_token(agent)
    make_snapshot(token, price_usd=1.0, price_change_24h=5.0)
    token_id = token.id

    result = TokenService.unlink_token(token_id, agent.id)

    assert result.success
    assert agent.token_count == 0
    assert TokenSnapshot.query.filter_by(token_id=token_id).count() == 1
    assert SnapshotService.latest_snapshot(token_id) is None
    assert SnapshotService.get_history(token_id) == []
    assert TokenService.get_trending_tokens() == []


def test_unlink_requires_owner(app):
    owner = make_agent('owner')
    other = make_agent('other')
    token = make_token(owner)

    assert TokenService.unlink_token(token.id, other.id).error == 'Token not found'


def test_trending_ranks_by_latest_price_change(app):
    agent = make_agent()
    up = make_token(agent, symbol='UP', address='0x1')
    down = make_token(agent, symbol='DOWN', address='0x2')
    now = datetime.utcnow()
    make_snapshot(up, snapshot_at=now - timedelta(hours=3), price_change_24h=-50.0)
    make_snapshot(up, snapshot_at=now - timedelta(hours=1), price_change_24h=30.0)
    make_snapshot(down, snapshot_at=now - timedelta(hours=1), price_change_24h=-10.0)

    trending = TokenService.get_trending_tokens(hours=24)

    assert [t['symbol'] for t in trending] == ['UP', 'DOWN']
    assert trending[0]['metrics']['price_change_24h'] == 30.0


def test_new_tokens_window(app):
    agent = make_agent()
    make_token(agent, symbol='OLD', address='0x1', created_at=datetime.utcnow() - timedelta(days=30))
    make_token(agent, symbol='NEW', address='0x2')

    assert [t['symbol'] for t in TokenService.get_new_tokens(days=7)] == ['NEW']


def test_trending_ignores_snapshots_outside_window_and_orphans(app):
    agent = make_agent()
    fresh = make_token(agent, symbol='FRESH', address='0x1')
    stale = make_token(agent, symbol='STALE', address='0x2')
    gone = make_token(agent, symbol='GONE', address='0x3')
    now = datetime.utcnow()
    make_snapshot(fresh, snapshot_at=now - timedelta(hours=2), price_change_24h=5.0)
    make_snapshot(stale, snapshot_at=now - timedelta(hours=30), price_change_24h=90.0)
    make_snapshot(gone, snapshot_at=now - timedelta(hours=1), price_change_24h=70.0)
    TokenService.unlink_token(gone.id, agent.id)

    assert [t['symbol'] for t in TokenService.get_trending_tokens(hours=24)] == ['FRESH']


def test_trending_uses_later_row_when_timestamps_match(app):
    agent = make_agent()
    token = make_token(agent)
    at = datetime.utcnow() - timedelta(hours=1)
    make_snapshot(token, snapshot_at=at, price_change_24h=1.0)
    make_snapshot(token, snapshot_at=at, price_change_24h=2.0)

    trending = TokenService.get_trending_tokens(hours=24)

    assert len(trending) == 1
    assert trending[0]['metrics']['price_change_24h'] == 2.0


# =============================================================================
# DIRECTORY
# =============================================================================

def test_directory_lists_verified_agents_with_their_primary_token(app):
    verified = make_agent('verified', erc8004_agent_id='8453:1')
    make_token(verified, symbol='SIDE', address='0x1', created_at=datetime.utcnow() - timedelta(days=9))
    make_token(verified, symbol='MAIN', address='0x2', is_primary=True)
    anon = make_agent('anon')
    make_token(anon, symbol='ANON', address='0x3')
    make_agent('tokenless', erc8004_agent_id='8453:2')

    directory = TokenService.get_token_directory()

    assert directory['total'] == 1
    assert directory['items'][0]['agent']['handle'] == 'verified'
    assert directory['items'][0]['token']['symbol'] == 'MAIN'


def test_directory_falls_back_to_oldest_token(app):
    agent = make_agent(erc8004_agent_id='8453:1')
    make_token(agent, symbol='NEWER', address='0x1')
    make_token(agent, symbol='OLDER', address='0x2', created_at=datetime.utcnow() - timedelta(days=9))

    assert TokenService.get_token_directory()['items'][0]['token']['symbol'] == 'OLDER'


def directory_agents():
    now = datetime.utcnow()
    specs = [
        ('alpha', 30.0, 5.0, 10, 2_000_000),
        ('beta', 80.0, -3.0, 1, 50_000),
        ('gamma', 55.0, 40.0, 5, None),
    ]
    for i, (handle, score, trend, age_days, cap) in enumerate(specs):
        agent = make_agent(handle, erc8004_agent_id=f'8453:{i}', signal_score=score,
                           growth_trend=trend, created_at=now - timedelta(days=age_days))
        token = make_token(agent, symbol=handle.upper(), is_primary=True)
        if cap is not None:
            make_snapshot(token, market_cap=cap)


def handles(directory):
    return [item['agent']['handle'] for item in directory['items']]


def test_directory_sort_modes(app):
    directory_agents()

    assert handles(TokenService.get_token_directory('signal')) == ['beta', 'gamma', 'alpha']
    assert handles(TokenService.get_token_directory('newest')) == ['beta', 'gamma', 'alpha']
    assert handles(TokenService.get_token_directory('trending')) == ['gamma', 'alpha', 'beta']
    assert handles(TokenService.get_token_directory('marketCap')) == ['alpha', 'beta', 'gamma']


def test_directory_unknown_sort_uses_signal(app):
    directory_agents()

    directory = TokenService.get_token_directory('loudest')

    assert directory['sort'] == 'signal'
    assert handles(directory) == ['beta', 'gamma', 'alpha']


def test_directory_min_market_cap_drops_small_and_unsnapshotted(app):
    directory_agents()

    directory = TokenService.get_token_directory(min_market_cap=100_000)

    assert handles(directory) == ['alpha']
    assert directory['total'] == 1


def test_directory_chain_filter_picks_token_on_that_chain(app):
    multi = make_agent('multi', erc8004_agent_id='8453:1')
    make_token(multi, symbol='BASED', chain='base', address='0x1', is_primary=True)
    make_token(multi, symbol='SOL', chain='solana', address='mint1')
    base_only = make_agent('baseonly', erc8004_agent_id='8453:2')
    make_token(base_only, symbol='ONLY', chain='base', address='0x2')

    directory = TokenService.get_token_directory(chain='Solana')

    assert handles(directory) == ['multi']
    assert directory['items'][0]['token']['symbol'] == 'SOL'


def test_directory_pagination(app):
    for i in range(5):
        agent = make_agent(f'agent{i}', erc8004_agent_id=f'8453:{i}', signal_score=float(i))
        make_token(agent, symbol=f'T{i}', address=f'0x{i}')

    last_page = TokenService.get_token_directory(page=3, page_size=2)
    assert last_page['total'] == 5
    assert handles(last_page) == ['agent0']

    assert TokenService.get_token_directory(page=4, page_size=2)['items'] == []
    assert TokenService.get_token_directory(page_size=500)['page_size'] == 100
    assert TokenService.get_token_directory(page=0)['page'] == 1
