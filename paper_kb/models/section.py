# paper_kb/models/section.py
from dataclasses import dataclass

@dataclass
class Section:
    id: str
    paper_id: str
    heading: str
    level: int  # 1-based nesting depth
    content: str
    position: int  # 0-based, contiguous per paper
