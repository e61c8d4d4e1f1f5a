"""
Template CSV generator for portfolio uploads.
Produces sample files in both accepted layouts; parse_csv reads them back without errors.
"""

from typing import List, Sequence


class TemplateError(Exception):
    """Raised when an unknown template layout is requested."""
    pass


TEMPLATE_LABEL = 'Portfolio'

SIMPLE_HEADER = ['date', 'principle', 'market_value']
SIMPLE_ROWS = [
    ['01/01/2024', '10000.00', '10000.00'],
    ['02/01/2024', '10000.00', '10125.00'],
    ['03/01/2024', '10100.00', '10251.50'],
]

FULL_HEADER = ['date', 'principle', 'share_value']
FULL_ROWS = [
    ['2024-01-01', '10000.00', '1.0000'],
    ['2024-01-02', '10000.00', '1.0125'],
    ['2024-01-03', '10100.00', '1.0150'],
]
FULL_BENCHMARK_LEVELS = {
    'sha': ['2974.93', '2962.28', '2967.25'],
    'she': ['9524.69', '9412.32', '9380.82'],
    'csi300': ['3431.11', '3386.35', '3372.50'],
}


def generate_template_csv(csv_format: str = 'simple', benchmarks: Sequence[str] = ('sha', 'she', 'csi300')) -> str:
    """
    Build a template CSV.

    Args:
        csv_format: 'simple' (date, principle, market_value; DD/MM/YYYY) or
            'full' (date, principle, share_value, benchmarks; YYYY-MM-DD)
        benchmarks: Benchmark columns for the full layout; keys without
            sample levels get empty cells

    Returns:
        CSV text with a label line, a header line and sample rows

    Raises:
        TemplateError: If csv_format is unknown
    """
    if csv_format == 'simple':
        header = list(SIMPLE_HEADER)
        rows = [list(r) for r in SIMPLE_ROWS]
    elif csv_format == 'full':
        header = FULL_HEADER + list(benchmarks)
        rows = []
        for i, base in enumerate(FULL_ROWS):
            levels = [FULL_BENCHMARK_LEVELS.get(name, [''] * len(FULL_ROWS))[i] for name in benchmarks]
            rows.append(list(base) + levels)
    else:
        raise TemplateError(f"Unknown template format: {csv_format}")

    lines: List[str] = [TEMPLATE_LABEL, ','.join(header)]
    lines.extend(','.join(row) for row in rows)
    return '\n'.join(lines) + '\n'
