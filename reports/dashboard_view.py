"""
Dashboard view builder - turns MetricsJSON into display cards and tables.
Pure presentation adapter: every value comes from the metrics document, formatted to strings.
"""

from typing import Dict, Any, List, Optional

from analysis.calculations.calendar import MONTH_NAMES
from reports.formatters import (
    format_percentage,
    format_signed_percentage,
    format_currency,
    format_ratio,
    format_share_value,
    format_date_display,
    format_period_label,
    format_years,
    format_recovery_status,
    NOT_AVAILABLE,
)
from reports.labelers import (
    calculate_health_score,
    classify_risk_level,
    classify_vol_level,
    diversification_score,
    describe_beta,
    LabelerError,
)


def _label(benchmark: str) -> str:
    return benchmark.upper()


def _overview_cards(metrics: Dict[str, Any]) -> List[Dict[str, str]]:
    overall = metrics.get('overall')
    if not overall:
        return []

    cards = [
        {'title': 'Current Share Value', 'value': format_share_value(overall['current_share_value'])},
        {'title': 'Total Return', 'value': format_signed_percentage(overall['total_return'])},
        {'title': 'Annualized Return', 'value': format_signed_percentage(overall['annualized_return'])},
        {'title': 'Avg Benchmark Return', 'value': format_signed_percentage(overall['avg_benchmark_return'])},
        {'title': 'Outperformance', 'value': format_signed_percentage(overall['outperformance'])},
        {'title': 'Principal', 'value': format_currency(overall['total_principal'])},
    ]
    if overall.get('total_market_value') is not None:
        cards.append({'title': 'Market Value', 'value': format_currency(overall['total_market_value'])})
    return cards


def _benchmark_table(metrics: Dict[str, Any]) -> Dict[str, Any]:
    overall = metrics.get('overall') or {}
    correlations = metrics.get('correlations') or {}

    rows = []
    for name in metrics['data_period']['benchmarks']:
        rows.append([
            _label(name),
            format_signed_percentage(overall.get('benchmark_returns', {}).get(name)),
            format_signed_percentage(overall.get('benchmark_annualized', {}).get(name)),
            format_ratio(correlations.get('correlation', {}).get(name)),
            format_ratio(correlations.get('beta', {}).get(name)),
            format_signed_percentage(correlations.get('alpha', {}).get(name)),
        ])

    return {
        'title': 'Benchmarks',
        'columns': ['Benchmark', 'Total Return', 'Annualized', 'Correlation', 'Beta', 'Alpha'],
        'rows': rows,
    }


def _risk_card(metrics: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    risk = metrics.get('risk')
    if not risk:
        return None

    items = {
        'Volatility': format_percentage(risk['volatility']),
        'Sharpe Ratio': format_ratio(risk['sharpe_ratio']),
        'Sortino Ratio': format_ratio(risk['sortino_ratio']),
        'Max Drawdown': format_percentage(risk['max_drawdown']),
        'Calmar Ratio': format_ratio(risk['calmar_ratio']),
        'Information Ratio': format_ratio(risk['information_ratio']),
    }
    for name, beta in (risk.get('beta') or {}).items():
        items[f'Beta ({_label(name)})'] = f"{format_ratio(beta)} ({describe_beta(beta)})"

    return {'title': 'Risk Metrics', 'items': items}


def _risk_level(risk: Dict[str, Any]) -> str:
    try:
        return f"{classify_risk_level(risk['volatility'], risk['max_drawdown'])} Risk"
    except LabelerError:
        return NOT_AVAILABLE


def _vol_level(volatility: Optional[float]) -> str:
    # Out-of-range volatility is already reported by the data quality checks
    try:
        return classify_vol_level(volatility)
    except LabelerError:
        return NOT_AVAILABLE


def _fraction_to_percent(value: Optional[float]) -> Optional[float]:
    return value * 100 if value is not None else None


def _health_card(metrics: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    risk = metrics.get('risk')
    if not risk:
        return None

    health = calculate_health_score(risk)
    diversification = diversification_score(risk.get('beta') or {})
    return {
        'title': 'Portfolio Health',
        'score': health['score'],
        'level': health['level'],
        'items': {
            'Health Score': f"{health['score']}/100 ({health['level']})",
            'Risk Level': _risk_level(risk),
            'Volatility Level': _vol_level(risk['volatility']),
            'Diversification': f"{diversification}%" if diversification is not None else NOT_AVAILABLE,
        },
        'components': health['components'],
    }


def _drawdown_card(metrics: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    summary = (metrics.get('drawdown') or {}).get('summary')
    if not summary:
        return None

    items = {
        'Max Drawdown': format_percentage(summary['max_drawdown']),
        'Current Drawdown': format_percentage(summary['current_drawdown']),
        'Average Drawdown': format_percentage(summary['average_drawdown']),
        'Time in Drawdown': format_percentage(_fraction_to_percent(summary['time_in_drawdown']), 1),
    }
    if summary.get('peak_date'):
        items['Peak'] = format_date_display(summary['peak_date'])
        items['Trough'] = format_date_display(summary['trough_date'])
        items['Recovery'] = format_recovery_status(summary['recovery_date'], metrics['as_of_date'])
    return {'title': 'Drawdown', 'items': items}


def _volatility_table(metrics: Dict[str, Any]) -> Dict[str, Any]:
    volatility = metrics.get('volatility') or {}
    rows = []
    for key, entry in volatility.items():
        if not isinstance(entry, dict):
            continue
        portfolio = entry['portfolio']
        rows.append([
            key,
            format_percentage(portfolio['current']),
            format_percentage(portfolio['avg']),
            format_percentage(portfolio['min']),
            format_percentage(portfolio['max']),
        ])
    return {
        'title': 'Rolling Volatility',
        'columns': ['Window', 'Current', 'Average', 'Min', 'Max'],
        'rows': rows,
    }


def _period_table(title: str, items: List[Dict[str, Any]], benchmarks: List[str], first_column: str) -> Dict[str, Any]:
    rows = []
    for item in items:
        row = [format_period_label(str(item.get('period', item.get('year')))),
               format_signed_percentage(item['fund_return'])]
        row.extend(format_signed_percentage(item['benchmark_returns'].get(name)) for name in benchmarks)
        rows.append(row)
    return {
        'title': title,
        'columns': [first_column, 'Portfolio'] + [_label(b) for b in benchmarks],
        'rows': rows,
    }


def _best_worst_tables(metrics: Dict[str, Any], benchmarks: List[str]) -> List[Dict[str, Any]]:
    tables = []
    for period, ranked in (metrics.get('best_worst') or {}).items():
        name = period.capitalize()
        tables.append(_period_table(f'Best {name}s', ranked['best'], benchmarks, name))
        tables.append(_period_table(f'Worst {name}s', ranked['worst'], benchmarks, name))
    return tables


def _heatmap_table(metrics: Dict[str, Any]) -> Dict[str, Any]:
    matrix: Dict[str, Dict[int, float]] = {}
    for item in (metrics.get('period_returns') or {}).get('month', []):
        year, month = item['period'].split('-')
        matrix.setdefault(year, {})[int(month)] = item['fund_return']

    rows = []
    for year in sorted(matrix):
        cells = matrix[year]
        rows.append([year] + [
            format_signed_percentage(cells[m], 1) if m in cells else '' for m in range(1, 13)
        ])

    seasonality = (metrics.get('seasonality') or {}).get('month', [])
    if seasonality:
        rows.append(['Avg'] + [
            format_signed_percentage(s['avg'], 1) if s['avg'] is not None else '' for s in seasonality
        ])
        rows.append(['Win %'] + [
            format_percentage(s['win_rate'], 0) if s['count'] else '' for s in seasonality
        ])

    return {'title': 'Monthly Returns', 'columns': ['Year'] + MONTH_NAMES, 'rows': rows}


def _rolling_returns_table(metrics: Dict[str, Any]) -> Dict[str, Any]:
    rows = []
    for label, summary in (metrics.get('rolling_returns') or {}).items():
        if summary is None:
            rows.append([label, NOT_AVAILABLE, NOT_AVAILABLE, NOT_AVAILABLE, NOT_AVAILABLE, NOT_AVAILABLE])
            continue
        rows.append([
            label,
            format_signed_percentage(summary['current']),
            format_signed_percentage(summary['avg']),
            format_signed_percentage(summary['min']),
            format_signed_percentage(summary['max']),
            format_percentage(summary['positive_pct'], 0),
        ])
    return {
        'title': 'Rolling Annualized Returns',
        'columns': ['Window', 'Current', 'Average', 'Worst', 'Best', 'Positive'],
        'rows': rows,
    }


def _growth_card(metrics: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    growth = metrics.get('growth')
    if not growth:
        return None

    def outcome(result):
        return (f"{format_currency(result['final_value'])} "
                f"({format_signed_percentage(result['total_return'], 1)}, "
                f"{format_signed_percentage(result['annualized_return'], 1)}/year)")

    items = {'Portfolio': outcome(growth['fund'])}
    for name, result in growth['benchmarks'].items():
        items[_label(name)] = outcome(result)
    items[f"Deposit ({format_percentage(growth['deposit_rate'] * 100, 1)})"] = outcome(growth['deposit'])

    profit = growth['fund']['profit']
    verb = 'a gain' if profit >= 0 else 'a loss'
    summary = (
        f"{format_currency(growth['amount'])} invested on {format_date_display(growth['start_date'])} "
        f"would be worth {format_currency(growth['fund']['final_value'])} after "
        f"{format_years(growth['years'])}, {verb} of {format_currency(abs(profit))}."
    )

    return {
        'title': 'Investment Growth',
        'summary': summary,
        'items': items,
        'outperformance': {
            **{_label(k): format_currency(v) for k, v in growth['benchmark_outperformance'].items()},
            'Deposit': format_currency(growth['deposit_outperformance']),
        },
    }


def build_dashboard_view(metrics: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build display structures from a MetricsJSON document.

    Args:
        metrics: Output of compose_metrics (or the JSON file it was written to)

    Returns:
        Dictionary with header, cards and tables of display strings
    """
    period = metrics['data_period']
    benchmarks = period['benchmarks']

    cards = [c for c in (
        _health_card(metrics),
        _risk_card(metrics),
        _drawdown_card(metrics),
        _growth_card(metrics),
    ) if c is not None]

    tables = [
        _benchmark_table(metrics),
        _period_table('Annual Returns', metrics.get('annual_returns', []), benchmarks, 'Year'),
        _volatility_table(metrics),
        _rolling_returns_table(metrics),
        _heatmap_table(metrics),
    ]
    tables.extend(_best_worst_tables(metrics, benchmarks))

    return {
        'title': f"Portfolio Dashboard: {metrics['portfolio']}",
        'subtitle': (
            f"{format_date_display(period['start_date'])} to {format_date_display(period['end_date'])} "
            f"({period['records']} records), as of {format_date_display(metrics['as_of_date'])}"
        ),
        'overview': _overview_cards(metrics),
        'cards': cards,
        'tables': [t for t in tables if t['rows']],
        'warnings': list((metrics.get('data_quality') or {}).get('warnings', [])),
    }


def _markdown_table(table: Dict[str, Any]) -> List[str]:
    lines = [
        f"## {table['title']}",
        "",
        "| " + " | ".join(table['columns']) + " |",
        "|" + "|".join(" --- " for _ in table['columns']) + "|",
    ]
    lines.extend("| " + " | ".join(str(cell) for cell in row) + " |" for row in table['rows'])
    lines.append("")
    return lines


def render_markdown(view: Dict[str, Any]) -> str:
    """
    Render a dashboard view as a markdown report.

    Args:
        view: Output of build_dashboard_view

    Returns:
        Markdown text
    """
    lines = [f"# {view['title']}", "", f"_{view['subtitle']}_", ""]

    if view['overview']:
        lines.append("## Overview")
        lines.append("")
        lines.extend(f"- **{card['title']}:** {card['value']}" for card in view['overview'])
        lines.append("")

    for card in view['cards']:
        lines.append(f"## {card['title']}")
        lines.append("")
        if card.get('summary'):
            lines.append(card['summary'])
            lines.append("")
        lines.extend(f"- **{name}:** {value}" for name, value in card['items'].items())
        if card.get('outperformance'):
            lines.append("")
            lines.append("Portfolio outperformance vs:")
            lines.extend(f"- {name}: {value}" for name, value in card['outperformance'].items())
        lines.append("")

    for table in view['tables']:
        lines.extend(_markdown_table(table))

    if view['warnings']:
        lines.append("## Data Quality")
        lines.append("")
        lines.extend(f"- {warning}" for warning in view['warnings'])
        lines.append("")

    return "\n".join(lines)
