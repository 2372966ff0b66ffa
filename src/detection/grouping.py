"""
Neighbor clustering of raw detection windows.

Overlapping window hits are partitioned into clusters of similar
rectangles, each cluster is averaged into one rectangle, and clusters
with too little support are dropped.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

from models.detection import Rectangle

GROUP_EPS = 0.2


def is_similar(r1: Rectangle, r2: Rectangle, eps: float = GROUP_EPS) -> bool:
    """True if every edge of r1 is within eps * mean(min size) of r2's."""
    delta = eps * (min(r1.width, r2.width) + min(r1.height, r2.height)) * 0.5
    return (
        abs(r1.x - r2.x) <= delta
        and abs(r1.y - r2.y) <= delta
        and abs(r1.right - r2.right) <= delta
        and abs(r1.bottom - r2.bottom) <= delta
    )


def partition(rects: Sequence[Rectangle], eps: float = GROUP_EPS) -> Tuple[List[int], int]:
    """
    Split rects into equivalence classes of the transitive closure of is_similar.

    Returns:
        (labels, n_classes). Labels are numbered in order of the first
        member's position in rects.
    """
    parent = list(range(len(rects)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    for i in range(len(rects)):
        for j in range(i + 1, len(rects)):
            if is_similar(rects[i], rects[j], eps):
                ri, rj = find(i), find(j)
                if ri != rj:
                    parent[max(ri, rj)] = min(ri, rj)

    labels: List[int] = []
    root_labels = {}
    for i in range(len(rects)):
        root = find(i)
        if root not in root_labels:
            root_labels[root] = len(root_labels)
        labels.append(root_labels[root])
    return labels, len(root_labels)


def group_rectangles(
    rects: Sequence[Rectangle],
    min_neighbors: int,
    eps: float = GROUP_EPS,
) -> List[Rectangle]:
    """
    Merge raw detections into neighbor-supported clusters.

    A cluster is kept if it has at least min_neighbors members. Small
    clusters lying inside a larger, better supported cluster are dropped.
    With min_neighbors == 0 the raw rectangles are returned unmerged.

    Output order follows cluster label order, i.e. the order in which each
    cluster's first member was emitted.
    """
    if min_neighbors == 0 or not rects:
        return list(rects)

    labels, n_classes = partition(rects, eps)

    sums = [[0, 0, 0, 0] for _ in range(n_classes)]
    counts = [0] * n_classes
    for rect, label in zip(rects, labels):
        s = sums[label]
        s[0] += rect.x
        s[1] += rect.y
        s[2] += rect.width
        s[3] += rect.height
        counts[label] += 1

    averaged = [
        Rectangle(
            x=int(round(s[0] / n)),
            y=int(round(s[1] / n)),
            width=int(round(s[2] / n)),
            height=int(round(s[3] / n)),
        )
        for s, n in zip(sums, counts)
    ]

    kept: List[Rectangle] = []
    for i, r1 in enumerate(averaged):
        n1 = counts[i]
        if n1 < min_neighbors:
            continue
        if not _is_nested(i, averaged, counts, min_neighbors, eps):
            kept.append(r1)
    return kept


def _is_nested(
    i: int,
    averaged: Sequence[Rectangle],
    counts: Sequence[int],
    min_neighbors: int,
    eps: float,
) -> bool:
    r1, n1 = averaged[i], counts[i]
    for j, r2 in enumerate(averaged):
        n2 = counts[j]
        if j == i or n2 < min_neighbors:
            continue
        dx = int(round(r2.width * eps))
        dy = int(round(r2.height * eps))
        inside = (
            r1.x >= r2.x - dx
            and r1.y >= r2.y - dy
            and r1.right <= r2.right + dx
            and r1.bottom <= r2.bottom + dy
        )
        if inside and (n2 > max(3, n1) or n1 < 3):
            return True
    return False
