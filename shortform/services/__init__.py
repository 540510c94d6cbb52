from .generation import ContentAutomation, GenerationOrchestrator, get_automation

__all__ = ["ContentAutomation", "GenerationOrchestrator", "get_automation"]
