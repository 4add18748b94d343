# paper_kb/graph/schema.py

from enum import Enum


class NodeType(str, Enum):
    PAPER = "paper"
    ENTITY = "entity"


class EdgeType(str, Enum):
    # Paper -> paper, resolved citations only
    CITES = "CITES"

    # Paper -> method / dataset / author entity
    HAS_ENTITY = "HAS_ENTITY"
