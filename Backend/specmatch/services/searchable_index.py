import logging
from typing import Sequence

from specmatch.services.models import FileNames, SearchableItem

logger = logging.getLogger(__name__)


def build_searchable_items(
    job_id: str,
    test_rows: Sequence[Sequence[str]],
    file_names: FileNames,
) -> list[SearchableItem]:
    """
    One SearchableItem per data row of the test table (row 0 is the header).

    The first cell is the test case id; the remaining non-empty cells, joined
    with " | ", are the searchable text. ``fields`` maps header -> cell.
    """
    if not test_rows:
        return []
    headers, rows = list(test_rows[0]), test_rows[1:]

    items = []
    for n, row in enumerate(rows, start=1):
        test_case_id = (row[0] if row else "") or f"row-{n}"
        text_parts = [cell for cell in row[1:] if cell]
        items.append(SearchableItem(
            id=f"tc-{job_id}-{test_case_id}",
            test_case_id=test_case_id,
            test_case_text=" | ".join(text_parts) if text_parts else test_case_id,
            test_case_source=file_names.tests_name,
            confidence=1.0,
            fields={header: (row[i] if i < len(row) else "") for i, header in enumerate(headers)},
        ))
    return items
