"""Rule-based visualization hints"""
from typing import Any, Dict, List, Optional

SINGLE_VALUE_INTENTS = {"COUNT", "AVERAGE", "SUM", "MAX", "MIN"}
PIE_MAX_GROUPS = 6


def suggest_visualization(intent: Optional[str], data: Optional[List[Dict[str, Any]]]) -> str:
    """
    Map an intent and a result to a visualization hint.
    
    Args:
        intent: Classified intent (COUNT, GROUP, TREND, ...)
        data: Result rows
        
    Returns:
        One of kpi_card, pie_chart, bar_chart, line_chart, table
    """
    if not data:
        return "table"
    
    row_count = len(data)
    intent = (intent or "").upper()
    
    # Single value → KPI card
    if intent in SINGLE_VALUE_INTENTS:
        return "kpi_card" if row_count == 1 else "bar_chart"
    
    # Few groups → pie, otherwise bars
    if intent == "GROUP":
        return "pie_chart" if row_count <= PIE_MAX_GROUPS else "bar_chart"
    
    if intent == "TREND":
        return "line_chart"
    
    if intent == "COMPARE":
        return "bar_chart"
    
    return "table"
