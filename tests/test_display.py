import re

import pytest

from finodes.display import (
    Color,
    bold,
    colorize,
    compress_hostlist,
    count_blocks,
    visible_len,
)


def _expand(hostlist):
    """Expand a compressed host list back into names."""
    if not hostlist:
        return set()
    items = re.findall(r"[^,\[]+(?:\[[^\]]*\])?", hostlist)
    names = set()
    for item in items:
        match = re.fullmatch(r"(.*)\[(.*)\]", item)
        if match is None:
            names.add(item)
            continue
        prefix, body = match.groups()
        for span in body.split(","):
            lo, _, hi = span.partition("-")
            hi = hi or lo
            for number in range(int(lo), int(hi) + 1):
                names.add(f"{prefix}{number:0{len(lo)}d}")
    return names


def test_colorize_disabled_returns_text():
    assert colorize("IDLE", Color.GREEN, enabled=False) == "IDLE"


def test_colorize_enabled_wraps_text():
    styled = colorize("IDLE", Color.GREEN)
    assert styled.startswith("\x1b[32m")
    assert "IDLE" in styled
    assert visible_len(styled) == len("IDLE")


def test_colorize_empty_stays_empty():
    assert colorize("", Color.RED) == ""


def test_bold_visible_len():
    text = "STATE"
    assert visible_len(bold(text)) == len(text)
    assert bold(text) != text


def test_visible_len_plain():
    assert visible_len("abc") == 3


@pytest.mark.parametrize("width", [1, 7, 20, 50])
@pytest.mark.parametrize("fraction", [0.0, 0.01, 0.33, 0.5, 0.999, 1.0])
def test_count_blocks_spans_width(width, fraction):
    full, empty, partial = count_blocks(width, fraction)
    assert full + empty + (1 if partial else 0) == width
    assert full >= 0 and empty >= 0


def test_count_blocks_extremes():
    assert count_blocks(20, 1.0) == (20, 0, None)
    assert count_blocks(20, 0.0) == (0, 20, None)


def test_count_blocks_clamps():
    assert count_blocks(10, 2.5) == count_blocks(10, 1.0)
    assert count_blocks(10, -1.0) == count_blocks(10, 0.0)


def test_count_blocks_monotonic():
    filled = [count_blocks(20, f / 100)[0] for f in range(101)]
    assert filled == sorted(filled)


def test_count_blocks_partial_glyph_is_single_char():
    _, _, partial = count_blocks(8, 0.5 / 8)
    assert partial is not None
    assert len(partial) == 1


def test_compress_contiguous():
    assert compress_hostlist(["node1", "node2", "node3"]) == "node[1-3]"


def test_compress_empty():
    assert compress_hostlist([]) == ""


def test_compress_single_name_has_no_brackets():
    assert compress_hostlist(["worker1042"]) == "worker1042"


def test_compress_plain_names_kept():
    result = compress_hostlist(["login", "login"])
    assert result == "login"


@pytest.mark.parametrize(
    "names",
    [
        ["worker1001", "worker1002", "worker1005", "worker1007", "worker1008"],
        ["gpu001", "gpu002", "gpu010", "cpu5", "cpu6"],
        ["a1", "b1", "a3", "a2", "headnode"],
        ["node9", "node10", "node11"],
    ],
)
def test_compress_round_trip(names):
    assert _expand(compress_hostlist(names)) == set(names)


def test_compress_is_order_independent():
    names = ["n3", "n1", "n2", "m7"]
    assert compress_hostlist(names) == compress_hostlist(sorted(names))