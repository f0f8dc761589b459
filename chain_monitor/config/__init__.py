from .monitor_config import MonitorConfig

__all__ = ['MonitorConfig']
