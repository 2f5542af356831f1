"""Change-point compression of grid-state timelines.

A dense stream of per-minute samples is reduced to the samples where the
grid state flips, plus the first and last sample which anchor the timeline.
The state at any instant (most recent sample at or before it) is unchanged.
"""

from ..models import Sample


def sort_samples(samples: list[Sample]) -> list[Sample]:
    """Return samples sorted by timestamp. Ties keep their original order."""
    return sorted(samples, key=lambda s: s.timestamp)


def compress(samples: list[Sample]) -> list[Sample]:
    """Reduce samples to change points.

    Keeps a sample if it is the first, the last, or its state differs from
    the last kept sample. Compressing an already compressed timeline returns
    the same timeline.
    """
    ordered = sort_samples(samples)
    if len(ordered) <= 1:
        return ordered

    kept: list[Sample] = []
    last_state: bool | None = None
    last_index = len(ordered) - 1

    for i, sample in enumerate(ordered):
        if i == 0 or i == last_index or sample.has_electricity != last_state:
            kept.append(sample)
            last_state = sample.has_electricity

    return kept
