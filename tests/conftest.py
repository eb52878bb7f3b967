"""
Shared fixtures
"""

import pytest

from panel_splitter.pod1_document_ingestion import parse_document

SVG_NS = "http://www.w3.org/2000/svg"


def make_svg(body: str, width: str = "600mm", height: str = "400mm", view_box: str = "0 0 600 400") -> str:
    """SVG document text with the given root attributes"""
    attrs = [f'xmlns="{SVG_NS}"']
    if width is not None:
        attrs.append(f'width="{width}"')
    if height is not None:
        attrs.append(f'height="{height}"')
    if view_box is not None:
        attrs.append(f'viewBox="{view_box}"')
    return f'<svg {" ".join(attrs)}>{body}</svg>'


@pytest.fixture
def full_cover_document():
    """600 x 400 mm design, 1 native unit per mm, filled edge to edge"""
    return parse_document(make_svg('<rect x="0" y="0" width="600" height="400" fill="#333"/>'), "design.svg")


@pytest.fixture
def corner_document():
    """600 x 400 mm design with a single small square near the origin"""
    return parse_document(make_svg('<rect id="square" x="10" y="10" width="20" height="20"/>'), "corner.svg")
