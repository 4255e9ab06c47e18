"""Presentation layer - human-friendly formatting."""

from .plan_formatter import format_apply_report, format_plan, format_state_list, format_state_record

__all__ = ["format_plan", "format_apply_report", "format_state_list", "format_state_record"]
