"""Level-based coarsening of timeline volume events.

Level ``n`` merges runs of ``2**n`` consecutive volume events into one, so a
timeline with thousands of days of activity still fits its viewport. Other
events pass through untouched. The caller picks the level.
"""
from typing import List, Sequence

from proposals_feed.data_models.timeline_events import (
    CommentsVolumeEvent,
    FeedEvent,
    VotesVolumeEvent,
    VotesVolumeMetadata,
    is_volume_event,
)
from proposals_feed.utils.validators import validate_aggregation_level


def _merge_comments(events: List[CommentsVolumeEvent]) -> CommentsVolumeEvent:
    return CommentsVolumeEvent(
        timestamp=min(event.timestamp for event in events),
        volume=sum(event.volume for event in events),
        max_volume=max(event.max_volume for event in events),
    )


def _merge_votes(events: List[VotesVolumeEvent]) -> VotesVolumeEvent:
    # Sized to the longest array so ragged inputs lose no volume
    volumes = [0.0] * max(len(event.volumes) for event in events)
    for event in events:
        for index, volume in enumerate(event.volumes):
            if index < len(volumes):
                volumes[index] += volume

    return VotesVolumeEvent(
        timestamp=min(event.timestamp for event in events),
        volumes=volumes,
        colors=list(events[0].colors),
        max_volume=max(event.max_volume for event in events),
        metadata=VotesVolumeMetadata(voting_power=max(event.metadata.voting_power for event in events)),
    )


def aggregate_volume_events(events: Sequence[FeedEvent], level: int) -> List[FeedEvent]:
    """Merge volume events in chunks of ``2**level``; newest first on return.

    Level 0 returns the events unchanged. Within a chunk, comment volumes
    merge into one comments event and vote volumes into one votes event.
    """
    validate_aggregation_level(level)

    events = list(events)
    if level == 0:
        return events

    volume_events = [event for event in events if is_volume_event(event)]
    other_events = [event for event in events if not is_volume_event(event)]

    if len(volume_events) <= 1:
        return events

    merge_count = min(2 ** level, len(volume_events))
    merged: List[FeedEvent] = []

    for start in range(0, len(volume_events), merge_count):
        chunk = volume_events[start:start + merge_count]
        if len(chunk) == 1:
            merged.append(chunk[0])
            continue

        comments = [event for event in chunk if isinstance(event, CommentsVolumeEvent)]
        votes = [event for event in chunk if isinstance(event, VotesVolumeEvent)]
        if comments:
            merged.append(_merge_comments(comments))
        if votes:
            merged.append(_merge_votes(votes))

    return sorted(other_events + merged, key=lambda event: event.timestamp, reverse=True)
