# extraction/rows.py
# Greedy top-to-bottom row clustering of digit tokens.
from dataclasses import dataclass, field
from typing import Iterable, List

from extraction.tokens import Token


@dataclass
class Row:
    cy: float
    avg_h: float
    items: List[Token] = field(default_factory=list)

    def add(self, t: Token) -> None:
        n = len(self.items)
        self.items.append(t)
        self.cy = (self.cy * n + t.cy) / (n + 1)
        self.avg_h = (self.avg_h * n + t.h) / (n + 1)

    @property
    def digits(self) -> str:
        return "".join(t.digits for t in self.items)

    @property
    def min_x(self) -> float:
        return min(t.min_x for t in self.items)

    @property
    def max_x(self) -> float:
        return max(t.max_x for t in self.items)

    @property
    def span_x(self) -> float:
        return max(1.0, self.max_x - self.min_x)

    @property
    def sum_w(self) -> float:
        return max(1.0, sum(t.w for t in self.items))

    @property
    def compactness(self) -> float:
        # ~1.0 for a tight digital readout, large for spread-out scale numerals
        return self.span_x / self.sum_w


def row_tolerance(token_h: float, row_h: float) -> float:
    return max(12.0, min(token_h, row_h) * 0.7)


def cluster_rows(tokens: Iterable[Token]) -> List[Row]:
    """Assign every token to exactly one Row; rows come out top-to-bottom, items left-to-right.

    Input order matters for ties: sorting by cy is stable, so tokens sharing a cy keep
    their relative order.
    """
    rows: List[Row] = []
    for t in sorted(tokens, key=lambda tk: tk.cy):
        for row in rows:
            if abs(t.cy - row.cy) <= row_tolerance(t.h, row.avg_h):
                row.add(t)
                break
        else:
            rows.append(Row(cy=t.cy, avg_h=t.h, items=[t]))
    for row in rows:
        row.items.sort(key=lambda tk: tk.min_x)
    return rows


def split_sequences(row: Row, gap_ratio: float) -> List[Row]:
    """Break a row (items left-to-right) wherever the gap to the previous item exceeds
    ``min(h) * gap_ratio``; each run becomes its own Row."""
    seqs: List[Row] = []
    cur = None
    for t in row.items:
        if cur is not None:
            prev = cur.items[-1]
            if t.min_x - prev.max_x <= min(prev.h, t.h) * gap_ratio:
                cur.add(t)
                continue
        cur = Row(cy=t.cy, avg_h=t.h, items=[t])
        seqs.append(cur)
    return seqs
