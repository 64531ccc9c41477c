"""Interpolation of positions between genetic/physical maps."""

import numpy as np


def interpolate_map(
    old_positions: np.ndarray, old_map: np.ndarray, new_map: np.ndarray
) -> np.ndarray:
    """Convert positions on one marker map to positions on another.

    Positions between two markers are placed by linear interpolation between
    the corresponding markers of the new map. Positions outside the marker
    range keep their distance from the nearest end marker.

    Args:
        old_positions: Positions to convert, on the old map's scale.
        old_map: Marker positions on the old map (non-decreasing).
        new_map: The same markers' positions on the new map.

    Returns:
        Converted positions, same length as old_positions.

    Raises:
        ValueError: If the maps differ in length or are empty.
    """
    old_positions = np.asarray(old_positions, dtype=np.float64)
    old_map = np.asarray(old_map, dtype=np.float64)
    new_map = np.asarray(new_map, dtype=np.float64)

    if old_map.shape != new_map.shape:
        raise ValueError(
            f"old_map and new_map must have the same length, "
            f"got {old_map.size} and {new_map.size}"
        )
    if old_map.size == 0:
        raise ValueError("Maps must contain at least one marker")
    if np.any(np.diff(old_map) < 0):
        raise ValueError("old_map must be non-decreasing")

    result = np.interp(old_positions, old_map, new_map)

    below = old_positions < old_map[0]
    result[below] = new_map[0] - (old_map[0] - old_positions[below])
    above = old_positions > old_map[-1]
    result[above] = new_map[-1] + (old_positions[above] - old_map[-1])

    return result
