from config.settings import Settings, load_settings, summarize_settings

__all__ = ["Settings", "load_settings", "summarize_settings"]
