from .summarizer import create_summary_agent, run_summary

__all__ = ["create_summary_agent", "run_summary"]
