from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from clawg.services.signal import (
    SignalComponents, SignalService, build_score, compose_signal_score,
    market_cap_points, social_score, token_score, verification_bonus
)

from factories import make_agent, make_log, make_snapshot, make_token


def test_build_score_full_activity():
    now = datetime(2026, 3, 1)
    logs = [(now - timedelta(days=1), 80)] * 5 + [(now - timedelta(days=30), 80)] * 15

    assert build_score(logs, now) == 28.0


def test_build_score_ignores_logs_outside_window():
    now = datetime(2026, 3, 1)

    assert build_score([(now - timedelta(days=120), 100)], now) == 0.0
    assert build_score([], now) == 0.0


@pytest.mark.parametrize('market_cap, points', [
    (150_000_000, 15),
    (100_000_000, 12),
    (5_000_000, 9),
    (1_000_000, 6),
    (20_000, 3),
    (1_001, 1),
    (1_000, 0),
    (0, 0),
])
def test_market_cap_tiers(market_cap, points):
    assert market_cap_points(market_cap) == points


def test_token_score_without_snapshot_is_zero():
    assert token_score(None) == 0.0


def test_token_score_caps_each_part():
    snapshot = SimpleNamespace(market_cap=5_000_000, holders=2_000, liquidity=50_000, volume_24h=100_000)

    # 9 tier + 7 holders + 2.5 liquidity + 3 volume
    assert token_score(snapshot) == 21.5


def test_social_score():
    assert social_score(0.06, 40, 30) == pytest.approx(20.8)
    assert social_score(0.0, 0, -80) == 0.0


def test_verification_bonus():
    assert verification_bonus(True, True, False, False) == 7
    assert verification_bonus(True, True, True, True) == 10
    assert verification_bonus(False, False, False, False) == 0


def test_out_of_range_components_are_clamped_before_summing():
    components = SignalComponents(build_score=55, token_score=31, social_score=-4, verification_bonus=12)

    assert compose_signal_score(components) == 70.0
    assert compose_signal_score(SignalComponents(1e6, 1e6, 1e6, 1e6)) == 100.0
    assert compose_signal_score(SignalComponents(-1, -1, -1, -1)) == 0.0


def test_agent_signal_score_end_to_end(app):
    now = datetime.utcnow()
    agent = make_agent(
        erc8004_agent_id='8453:42',
        twitter='clawg',
        engagement_rate=0.06,
        audience_score=40,
        growth_trend=30,
    )
    for _ in range(5):
        make_log(agent, created_at=now - timedelta(days=1), quality_score=80)
    for _ in range(15):
        make_log(agent, created_at=now - timedelta(days=30), quality_score=80)
    token = make_token(agent, is_primary=True)
    make_snapshot(token, market_cap=5_000_000, holders=2_000)

    score = SignalService.update_signal_score(agent, now)

    assert agent.signal_build == 28.0
    assert agent.signal_token == 16.0
    assert agent.signal_social == pytest.approx(20.8)
    assert agent.signal_verification == 7
    assert score == pytest.approx(71.8)
    assert agent.signal_updated_at == now


def test_signal_uses_primary_token_only(app):
    agent = make_agent(erc8004_agent_id='1')
    primary = make_token(agent, symbol='MAIN', address='0x1', is_primary=True)
    side = make_token(agent, symbol='SIDE', address='0x2')
    make_snapshot(primary, market_cap=20_000)
    make_snapshot(side, market_cap=500_000_000)

    assert SignalService.calculate_token_score(agent.id) == 3.0


def test_agent_without_tokens_scores_zero_token_component(app):
    agent = make_agent()

    assert SignalService.calculate_token_score(agent.id) == 0.0
