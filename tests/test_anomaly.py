"""
Tests for rating anomaly detection (anomaly.detect_anomalies).

All tests pass an explicit ``now`` so recency rules are deterministic.
"""

from __future__ import annotations

from dataclasses import replace

from backend_veriai.analysis_engine.anomaly import (
    AnomalySeverity,
    AnomalyType,
    RiskLevel,
    detect_anomalies,
    risk_level_for,
)
from conftest import NOW


def _users(n: int) -> list[str]:
    return [f"0x{i:040x}" for i in range(1, n + 1)]


def test_empty_ratings_no_flags():
    """No ratings -> no flags, score 0, LOW."""
    result = detect_anomalies([], None, now=NOW)
    assert result.flags == ()
    assert result.risk_score == 0
    assert result.risk_level is RiskLevel.LOW
    assert result.to_dict() == {"flags": [], "risk_score": 0, "risk_level": "LOW"}


def test_risk_level_boundaries():
    """HIGH at 60, MEDIUM from 30 to 59, LOW below 30."""
    assert risk_level_for(60) is RiskLevel.HIGH
    assert risk_level_for(59) is RiskLevel.MEDIUM
    assert risk_level_for(30) is RiskLevel.MEDIUM
    assert risk_level_for(29) is RiskLevel.LOW
    assert risk_level_for(0) is RiskLevel.LOW


def test_rate_spike_needs_five_recent(make_rating):
    """Four ratings in the last hour do not fire; five do."""
    four = [make_rating(u, age_sec=60 * (i + 1)) for i, u in enumerate(_users(4))]
    assert detect_anomalies(four, None, now=NOW).flags == ()

    five = [make_rating(u, age_sec=60 * (i + 1), score=i + 1) for i, u in enumerate(_users(5))]
    result = detect_anomalies(five, None, now=NOW)
    assert [f.type for f in result.flags] == [AnomalyType.RATE_SPIKE]
    assert result.risk_score == 20
    flag = result.flags[0]
    assert flag.severity is AnomalySeverity.MEDIUM
    assert len(flag.evidence) == 5
    assert set(flag.evidence[0]) == {"user", "timestamp"}


def test_millisecond_timestamps_do_not_break_rate_spike_evidence(make_rating):
    """Timestamps outside the datetime range still count; their evidence time is empty."""
    ratings = [
        replace(make_rating(u, score=i + 1), timestamp=NOW * 1000 + i) for i, u in enumerate(_users(5))
    ]
    result = detect_anomalies(ratings, None, now=NOW)
    assert [f.type for f in result.flags] == [AnomalyType.RATE_SPIKE]
    assert {e["timestamp"] for e in result.flags[0].evidence} == {""}
    assert ratings[0].to_dict()["timestamp_iso"] == ""


def test_rating_exactly_one_hour_old_is_not_recent(make_rating):
    """Recency is strict: now - timestamp must be < 3600."""
    ratings = [make_rating(u, age_sec=3600, score=i % 5) for i, u in enumerate(_users(5))]
    result = detect_anomalies(ratings, None, now=NOW)
    assert AnomalyType.RATE_SPIKE not in [f.type for f in result.flags]


def test_new_wallet_cluster(make_rating):
    """Three of four ratings from wallets younger than 7 days -> +35 high."""
    users = _users(4)
    ratings = [
        make_rating(users[0], wallet_age_sec=2 * 86400, age_sec=2 * 86400, score=1),
        make_rating(users[1], wallet_age_sec=3 * 86400, age_sec=3 * 86400, score=2),
        make_rating(users[2], wallet_age_sec=4 * 86400, age_sec=4 * 86400, score=3),
        make_rating(users[3], score=4),
    ]
    result = detect_anomalies(ratings, None, now=NOW)
    assert [f.type for f in result.flags] == [AnomalyType.NEW_WALLET_CLUSTER]
    assert result.risk_score == 35
    assert result.risk_level is RiskLevel.MEDIUM
    assert "3 out of 4" in result.flags[0].detail


def test_new_wallet_cluster_ratio_must_exceed_half(make_rating):
    """Exactly half of the ratings from new wallets does not fire."""
    users = _users(6)
    ratings = [make_rating(u, wallet_age_sec=86400, age_sec=86400, score=i) for i, u in enumerate(users[:3])]
    ratings += [make_rating(u, score=i) for i, u in enumerate(users[3:])]
    result = detect_anomalies(ratings, None, now=NOW)
    assert AnomalyType.NEW_WALLET_CLUSTER not in [f.type for f in result.flags]


def test_wallet_age_falls_back_to_rating_timestamp(make_rating):
    """Without a first-seen time, a recent rating counts as a new wallet."""
    ratings = [make_rating(u, wallet_age_sec=None, age_sec=86400, score=i) for i, u in enumerate(_users(3))]
    result = detect_anomalies(ratings, None, now=NOW)
    assert [f.type for f in result.flags] == [AnomalyType.NEW_WALLET_CLUSTER]


def test_whale_stake(make_rating):
    """One address above 40% of total stake -> +30 with user, stake and percentage."""
    users = _users(3)
    ratings = [
        make_rating(users[0], stake=5.0, score=1),
        make_rating(users[1], stake=3.0, score=2),
        make_rating(users[2], stake=2.0, score=3),
    ]
    result = detect_anomalies(ratings, None, now=NOW)
    assert [f.type for f in result.flags] == [AnomalyType.WHALE_STAKE]
    assert result.flags[0].evidence == {"user": users[0], "stake": 5.0, "percentage": 50}


def test_whale_stake_exactly_forty_percent_does_not_fire(make_rating):
    users = _users(3)
    ratings = [
        make_rating(users[0], stake=4.0, score=1),
        make_rating(users[1], stake=3.0, score=2),
        make_rating(users[2], stake=3.0, score=3),
    ]
    assert detect_anomalies(ratings, None, now=NOW).flags == ()


def test_zero_total_stake_does_not_fire(make_rating):
    ratings = [make_rating(u, stake=0.0, score=i) for i, u in enumerate(_users(3))]
    assert detect_anomalies(ratings, None, now=NOW).flags == ()


def test_score_uniformity(make_rating):
    """Five of five identical scores -> +15 with the score distribution as evidence."""
    ratings = [make_rating(u, score=5) for u in _users(5)]
    result = detect_anomalies(ratings, None, now=NOW)
    assert [f.type for f in result.flags] == [AnomalyType.SCORE_UNIFORMITY]
    assert result.flags[0].evidence == {"5": 5}
    assert result.risk_score == 15


def test_score_uniformity_needs_more_than_eighty_percent(make_rating):
    """Four of five (80%) identical scores is not uniform."""
    scores = [5, 5, 5, 5, 1]
    ratings = [make_rating(u, score=s) for u, s in zip(_users(5), scores)]
    assert detect_anomalies(ratings, None, now=NOW).flags == ()


def test_slashed_ratings(make_rating):
    users = _users(3)
    ratings = [
        make_rating(users[0], slashed=True, score=1),
        make_rating(users[1], score=4),
        make_rating(users[2], score=3),
    ]
    result = detect_anomalies(ratings, None, now=NOW)
    assert [f.type for f in result.flags] == [AnomalyType.SLASHED_RATINGS]
    assert result.flags[0].evidence == [{"user": users[0], "score": 1}]
    assert result.risk_score == 25


def test_rate_spike_whale_and_slashed_scores_75_high(make_rating):
    """
    Six ratings from established wallets: five in the last hour, one slashed,
    one address holding 50% of stake -> 20 + 30 + 25 = 75, HIGH.
    """
    users = _users(6)
    ratings = [
        make_rating(users[0], age_sec=300, stake=5.0, score=5),
        make_rating(users[1], age_sec=600, stake=1.0, score=4),
        make_rating(users[2], age_sec=900, stake=1.0, score=3, slashed=True),
        make_rating(users[3], age_sec=1200, stake=1.0, score=5),
        make_rating(users[4], age_sec=1800, stake=1.0, score=2),
        make_rating(users[5], age_sec=40 * 86400, stake=1.0, score=4),
    ]
    result = detect_anomalies(ratings, None, now=NOW)
    assert [f.type for f in result.flags] == [
        AnomalyType.RATE_SPIKE,
        AnomalyType.WHALE_STAKE,
        AnomalyType.SLASHED_RATINGS,
    ]
    assert result.risk_score == 75
    assert result.risk_level is RiskLevel.HIGH


def test_all_rules_fire_in_detection_order(make_rating):
    """Every rule fires at most once, in the fixed order."""
    users = _users(6)
    ratings = [
        make_rating(u, age_sec=60 * (i + 1), wallet_age_sec=3600, stake=10.0 if i == 0 else 1.0, score=5,
                    slashed=(i == 5))
        for i, u in enumerate(users)
    ]
    result = detect_anomalies(ratings, None, now=NOW)
    assert [f.type for f in result.flags] == [
        AnomalyType.RATE_SPIKE,
        AnomalyType.NEW_WALLET_CLUSTER,
        AnomalyType.WHALE_STAKE,
        AnomalyType.SCORE_UNIFORMITY,
        AnomalyType.SLASHED_RATINGS,
    ]
    assert result.risk_score == 20 + 35 + 30 + 15 + 25


def test_detection_is_pure(make_rating):
    """Identical input gives identical output, and the input is not modified."""
    ratings = [make_rating(u, age_sec=60 * (i + 1), score=5) for i, u in enumerate(_users(6))]
    snapshot = list(ratings)
    first = detect_anomalies(ratings, None, now=NOW)
    second = detect_anomalies(ratings, None, now=NOW)
    assert first == second
    assert first.to_dict() == second.to_dict()
    assert ratings == snapshot
