"""Presentation layer: human-friendly formatting."""

from .human_formatter import format_apply_result, format_plan, format_state_list, format_state_record, plan_to_dict

__all__ = ["format_plan", "format_apply_result", "format_state_list", "format_state_record", "plan_to_dict"]
