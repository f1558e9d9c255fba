"""
Point normalization.

Turns one backend result row plus one [timestamp, value] sample into the flat
record streamed to clients.
"""

from typing import Any, Dict, Mapping, Sequence

# Rendered in place of a missing namespace/pod label in fallback series keys
MISSING_LABEL = "undefined"


def series_key(labels: Mapping[str, Any]) -> str:
    """
    Stable series key for a row.

    Prefers the row's own "id" label, else "<namespace>/<pod>".
    """
    key = labels.get("id")
    if key:
        return key
    namespace = labels.get("namespace", MISSING_LABEL)
    pod = labels.get("pod", MISSING_LABEL)
    return f"{namespace}/{pod}"


def to_point(sample: Sequence[Any], row: Mapping[str, Any], subscription) -> Dict[str, Any]:
    """
    Build a point record.

    Args:
        sample: [timestamp, value] pair; value is kept as the backend's string
        row: Backend result row with a "metric" label mapping
        subscription: Owning subscription (id and metrics label list)

    Returns:
        {"id", "k", "t", "v"} plus one key per configured label present on the row

    Raises:
        KeyError, TypeError, ValueError: On a malformed row or sample
    """
    labels = row["metric"]
    if not isinstance(labels, Mapping):
        raise TypeError(f"row labels must be a mapping, got {type(labels).__name__}")

    timestamp, value = sample

    point: Dict[str, Any] = {
        "id": subscription.id,
        "k": series_key(labels),
        "t": timestamp,
        "v": value,
    }

    for name in subscription.metrics:
        if name in labels:
            point[name] = labels[name]

    return point
