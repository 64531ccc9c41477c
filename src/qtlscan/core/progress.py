"""Progress display for per-position scan loops."""

import sys
from collections.abc import Iterable, Iterator

import progressbar


def progress_iterator(iterable: Iterable, total: int, desc: str = "") -> Iterator:
    """Wrap an iterable with a progressbar2 display on stdout.

    The bar is finished in a finally block, so a break or an exception in
    the caller's loop still leaves the terminal clean.

    Args:
        iterable: Items to yield.
        total: Number of items.
        desc: Optional label shown before the counter.

    Yields:
        Items from the wrapped iterable.
    """
    widgets = [
        f"{desc}: " if desc else "",
        progressbar.Counter(),
        f"/{total} ",
        progressbar.Percentage(),
        " ",
        progressbar.Bar(),
        " ",
        progressbar.ETA(),
    ]
    bar = progressbar.ProgressBar(max_value=total, widgets=widgets, fd=sys.stdout)
    bar.start()
    try:
        for i, item in enumerate(iterable):
            yield item
            bar.update(i + 1)
    finally:
        bar.finish()


def iter_positions(
    n_pos: int, show_progress: bool = False, desc: str = ""
) -> Iterable[int]:
    """Position indices 0..n_pos-1 in order, with a progress bar if requested."""
    if show_progress:
        return progress_iterator(range(n_pos), total=n_pos, desc=desc)
    return range(n_pos)
