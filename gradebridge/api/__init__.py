from .client import GradingApiClient
