from .servicenow_client import DisplayMode, ServiceNowAPIError, ServiceNowClient

__all__ = ["DisplayMode", "ServiceNowAPIError", "ServiceNowClient"]
