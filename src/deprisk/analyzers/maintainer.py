"""Maintainer health heuristics from repository activity."""

from datetime import datetime, timezone

from deprisk.models.schemas import CommitFrequency, MaintainerHealth

ABANDONED_AFTER_DAYS = 365
LOW_ACTIVITY_AFTER_DAYS = 180


def analyze_maintainer_health(
    contributor_count: int,
    last_commit_date: datetime | str | None,
    repo_created_at: datetime | str | None,
    now: datetime | None = None,
) -> MaintainerHealth:
    """Classify repository maintenance from commit recency and contributor count.

    Args:
        contributor_count: Number of contributors to the repository.
        last_commit_date: Date of the most recent commit, if known.
        repo_created_at: Repository creation date, used when no commit date is known.
        now: Reference time. Defaults to the current UTC time.

    Returns:
        MaintainerHealth with human-readable risks.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    last_activity = _parse_date(last_commit_date) or _parse_date(repo_created_at) or now
    days = max(0, (now - last_activity).days)

    risks = []

    is_abandoned = days > ABANDONED_AFTER_DAYS
    if is_abandoned:
        risks.append("Repository appears abandoned (no commits in over a year)")
    elif days > LOW_ACTIVITY_AFTER_DAYS:
        risks.append("Low recent activity (no commits in 6+ months)")

    is_single_maintainer = contributor_count <= 1
    if is_single_maintainer:
        risks.append("Single maintainer risk (bus factor = 1)")
    elif contributor_count <= 3:
        risks.append(f"Limited maintainer pool (only {contributor_count} contributors)")

    if days <= 30:
        frequency = CommitFrequency.ACTIVE
    elif days <= 90:
        frequency = CommitFrequency.MODERATE
    elif days <= ABANDONED_AFTER_DAYS:
        frequency = CommitFrequency.LOW
    else:
        frequency = CommitFrequency.INACTIVE

    return MaintainerHealth(
        contributor_count=max(0, contributor_count),
        last_commit_days=days,
        is_abandoned=is_abandoned,
        is_single_maintainer=is_single_maintainer,
        commit_frequency=frequency,
        risks=risks,
    )


def maintainer_score(health: MaintainerHealth | None) -> int:
    """Calculate the 0-100 maintainer sub-score.

    Abandonment dominates (+50), otherwise low (+30) or moderate (+10)
    activity. A single maintainer adds 30, three or fewer contributors 15.
    Six to twelve months without commits adds a further 20.
    """
    if health is None:
        return 0

    score = 0

    if health.is_abandoned:
        score += 50
    elif health.commit_frequency == CommitFrequency.LOW:
        score += 30
    elif health.commit_frequency == CommitFrequency.MODERATE:
        score += 10

    if health.is_single_maintainer:
        score += 30
    elif health.contributor_count <= 3:
        score += 15

    if LOW_ACTIVITY_AFTER_DAYS < health.last_commit_days <= ABANDONED_AFTER_DAYS:
        score += 20

    return min(100, score)


def _parse_date(value: datetime | str | None) -> datetime | None:
    """Parse an ISO-8601 string or datetime into an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
