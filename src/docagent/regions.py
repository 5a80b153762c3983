# regions.py
# Human-authored regions that must survive automated rewrites.
#
# A region is everything from a start marker to the next matching end
# marker, markers included. Markers are literal delimiters with no nesting,
# so a plain left-to-right substring scan is enough.
#
# stdlib only: zero external dependencies.

from typing import NamedTuple


class MarkerPair(NamedTuple):
    name: str
    start: str
    end: str


MARKERS: tuple[MarkerPair, ...] = (
    MarkerPair("HUMAN-EDITED", "<!-- HUMAN-EDITED START -->", "<!-- HUMAN-EDITED END -->"),
    MarkerPair("PRESERVE", "<!-- PRESERVE START -->", "<!-- PRESERVE END -->"),
)


def extract_regions(content: str, markers: tuple[MarkerPair, ...] = MARKERS) -> dict[str, str]:
    """
    Map region keys ("HUMAN-EDITED-1", "PRESERVE-2", ...) to their verbatim text.

    Numbering is per marker vocabulary, in order of appearance. A start marker
    without a matching end stops the scan for that vocabulary.
    """
    regions: dict[str, str] = {}

    for marker in markers:
        position = 0
        number = 1
        while True:
            start = content.find(marker.start, position)
            if start == -1:
                break
            end = content.find(marker.end, start + len(marker.start))
            if end == -1:
                break
            end += len(marker.end)

            regions[f"{marker.name}-{number}"] = content[start:end]
            position = end
            number += 1

    return regions


def validate_preservation(original: str, new: str) -> list[str]:
    """
    One warning per region of `original` whose exact text is absent from `new`.

    Advisory only: callers report these, they never block acceptance.
    """
    return [
        f"Human-edited section '{key}' was not preserved"
        for key, text in extract_regions(original).items()
        if text not in new
    ]
